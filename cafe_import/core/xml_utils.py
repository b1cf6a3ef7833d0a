"""
Utilidades para manejo de XML de facturas electrónicas DGI (rFE).

Todas las búsquedas son por nombre local del elemento (sin importar el
namespace declarado por el registro) y degradan a cadena vacía / None cuando
el grupo o el elemento no existen: nunca lanzan excepción.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from lxml import etree
from lxml import html as lxml_html

from cafe_import.utils.logger import logger


def _local_path(path: str) -> str:
    """
    Convierte "gEmis/gRucEmi/dRuc" en una expresión XPath por local-name().

    El primer segmento se busca como descendiente; los siguientes como hijos.
    """
    segments = [s for s in path.split("/") if s]
    steps = [f"*[local-name()='{segment}']" for segment in segments]
    return ".//" + "/".join(steps)


def safe_parse_xml(xml_source: Any) -> Optional[etree._Element]:
    """
    Parsea XML de manera segura desde str o bytes.

    Args:
        xml_source: Contenido XML

    Returns:
        Elemento raíz del XML o None si hay error
    """
    try:
        parser = etree.XMLParser(recover=True, strip_cdata=False, resolve_entities=False, no_network=True)

        if isinstance(xml_source, str):
            xml_source = xml_source.encode("utf-8")
        return etree.fromstring(xml_source, parser)

    except Exception as e:
        logger.error(f"Error parseando XML: {e}")
        return None


def safe_parse_html(html_source: Any) -> Optional[lxml_html.HtmlElement]:
    """
    Parsea una página HTML del registro (documento completo o fragmento).

    Atributos y texto quedan con las entidades ya decodificadas una vez.

    Returns:
        Elemento <html> del documento o None si está vacío o no se puede parsear
    """
    if not html_source or not str(html_source).strip():
        return None

    try:
        parser = lxml_html.HTMLParser(encoding="utf-8")
        if isinstance(html_source, str):
            html_source = html_source.encode("utf-8")
        return lxml_html.document_fromstring(html_source, parser=parser)

    except (etree.ParserError, ValueError) as e:
        logger.warning(f"Error parseando HTML: {e}")
        return None


def local_name(element: etree._Element) -> str:
    """Nombre del tag sin namespace."""
    try:
        return etree.QName(element).localname
    except (ValueError, TypeError):
        return ""


def find_group(element: Optional[etree._Element], path: str) -> Optional[etree._Element]:
    """
    Obtiene el primer grupo (elemento contenedor) que coincide con la ruta.

    Args:
        element: Elemento base (puede ser None)
        path: Ruta de nombres locales, ej. "gDGen/gEmis"

    Returns:
        Elemento encontrado o None
    """
    if element is None:
        return None

    try:
        nodes = element.xpath(_local_path(path))
        return nodes[0] if nodes else None
    except etree.XPathError as e:
        logger.warning(f"Error buscando grupo '{path}': {e}")
        return None


def get_nodes(element: Optional[etree._Element], path: str) -> List[etree._Element]:
    """
    Obtiene todos los elementos que coinciden con la ruta, en orden de documento.

    Args:
        element: Elemento base (puede ser None)
        path: Ruta de nombres locales

    Returns:
        Lista de elementos encontrados (vacía si no hay)
    """
    if element is None:
        return []

    try:
        nodes = element.xpath(_local_path(path))
        return [node for node in nodes if isinstance(node, etree._Element)]
    except etree.XPathError as e:
        logger.warning(f"Error obteniendo nodos '{path}': {e}")
        return []


def get_text(element: Optional[etree._Element], path: str) -> str:
    """
    Extrae texto de un elemento dentro de un grupo.

    Args:
        element: Grupo ancestro (puede ser None)
        path: Ruta de nombres locales relativa al grupo

    Returns:
        Texto del elemento o cadena vacía si no existe
    """
    node = find_group(element, path)
    if node is not None and node.text:
        return clean_xml_text(node.text)
    return ""


def clean_xml_text(text: str) -> str:
    """
    Limpia texto extraído de XML normalizando espacios.

    Args:
        text: Texto a limpiar

    Returns:
        Texto limpio
    """
    if not text:
        return ""

    return " ".join(text.split()).strip()


_NUMBER_PREFIX = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)")
_NON_NUMERIC = re.compile(r"[^0-9.,\-]")


def parse_amount(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """
    Convierte un monto del registro a Decimal.

    Reglas:
    - Se eliminan los caracteres fuera de [0-9.,-] (moneda, espacios).
    - Con un solo tipo de separador, la primera coma se toma como punto decimal.
    - Con coma y punto a la vez, el separador más a la derecha es el decimal y
      el otro se descarta como separador de miles.
    - Se toma el prefijo numérico; si no hay, se retorna default.

    Example:
        >>> parse_amount("B/. 10,70")
        Decimal('10.70')
        >>> parse_amount("1,234.50")
        Decimal('1234.50')
    """
    if value is None:
        return default

    if isinstance(value, Decimal):
        return value

    cleaned = _NON_NUMERIC.sub("", str(value))
    if not cleaned:
        return default

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".", 1)
        else:
            cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".", 1)

    match = _NUMBER_PREFIX.match(cleaned)
    if not match:
        return default

    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        logger.warning(f"Error convirtiendo '{value}' a Decimal")
        return default
