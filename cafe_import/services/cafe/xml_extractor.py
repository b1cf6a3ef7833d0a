"""
Extractor del XML de la factura embebido en la página HTML del registro.

La DGI ha cambiado el marcado de la página varias veces; por eso el XML se
busca con una cadena ordenada de estrategias (la primera que encuentre algo
gana). Cada estrategia es una función pura html -> Optional[xml] que retorna
el XML listo para parsear, de modo que agregar una nueva es agregar un
elemento a EXTRACTION_STRATEGIES.
"""
import re
from typing import Callable, Optional, Tuple

from cafe_import.core.exceptions import XmlExtractionError
from cafe_import.core.xml_utils import safe_parse_html
from cafe_import.utils.logger import logger


Strategy = Callable[[str], Optional[str]]


# &amp; va al final para no decodificar dos veces secuencias como "&amp;lt;"
_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
)

_XML_FIELDS = (
    "//input[contains(translate(@name, 'XML', 'xml'), 'xml')"
    " or contains(translate(@id, 'XML', 'xml'), 'xml')]"
    " | //textarea[contains(translate(@name, 'XML', 'xml'), 'xml')"
    " or contains(translate(@id, 'XML', 'xml'), 'xml')]"
)

_SCRIPT_BODY = re.compile(r"<script\b[^>]*>([\s\S]*?)</script\s*>", re.IGNORECASE)
_SCRIPT_XML_LITERAL = re.compile(r"([\"'`])(<\?xml[\s\S]*?</rFE>)\1")
_JS_ESCAPES = (
    ("\\\"", "\""),
    ("\\'", "'"),
    ("\\/", "/"),
    ("\\n", "\n"),
    ("\\r", "\r"),
    ("\\t", "\t"),
)

_RAW_XML = re.compile(r"<\?xml[\s\S]*?</rFE>")
_ESCAPED_XML = re.compile(r"&lt;\?xml[\s\S]*?&lt;/rFE&gt;")


def decode_entities(text: str) -> str:
    """Decodifica &lt; &gt; &quot; &#39; &amp;."""
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def from_hidden_field(html: str) -> Optional[str]:
    """
    Estrategia 1: campo oculto o textarea cuyo name/id contiene "xml".

    Se lee el atributo value (input) o el contenido (textarea). El parser HTML
    ya decodifica las entidades del atributo o del texto, así que el valor no
    se vuelve a decodificar.
    """
    document = safe_parse_html(html)
    if document is None:
        return None

    for field in document.xpath(_XML_FIELDS):
        if field.tag == "input":
            content = field.get("value") or ""
        else:
            content = field.text_content()
        if content.strip():
            return content.strip()

    return None


def from_script_literal(html: str) -> Optional[str]:
    """
    Estrategia 2: literal de cadena dentro de un <script> que va desde la
    declaración XML hasta el cierre </rFE>.
    """
    for script in _SCRIPT_BODY.finditer(html):
        literal = _SCRIPT_XML_LITERAL.search(script.group(1))
        if literal:
            content = literal.group(2)
            for escaped, char in _JS_ESCAPES:
                content = content.replace(escaped, char)
            return content
    return None


def from_raw_markup(html: str) -> Optional[str]:
    """
    Estrategia 3 (último recurso): cualquier tramo <?xml ... </rFE> de la
    página, tal cual o escapado como &lt;?xml ... &lt;/rFE&gt;.
    """
    match = _RAW_XML.search(html)
    if match:
        return match.group(0)

    match = _ESCAPED_XML.search(html)
    if match:
        return decode_entities(match.group(0))

    return None


EXTRACTION_STRATEGIES: Tuple[Strategy, ...] = (
    from_hidden_field,
    from_script_literal,
    from_raw_markup,
)


def extract_invoice_xml(html: str, strategies: Tuple[Strategy, ...] = EXTRACTION_STRATEGIES) -> str:
    """
    Obtiene el XML de la factura desde la página del registro.

    Args:
        html: HTML crudo de la respuesta
        strategies: Estrategias a evaluar en orden

    Returns:
        XML de la factura, sin entidades HTML pendientes

    Raises:
        XmlExtractionError: Si ninguna estrategia encuentra el XML
    """
    for strategy in strategies:
        xml = strategy(html or "")
        if xml:
            logger.debug(f"XML extraído con estrategia '{strategy.__name__}' ({len(xml)} caracteres)")
            return xml

    logger.warning(
        "No se encontró el XML de la factura en la página del registro; "
        "el formato de la página pudo haber cambiado"
    )
    raise XmlExtractionError(
        "No se pudo extraer el XML de la factura. "
        "Es posible que la página de la DGI haya cambiado de formato."
    )


_NOT_FOUND_MARKERS = ("no se encontr", "no encontrada", "no existe")


def page_reports_not_found(html: str) -> bool:
    """True si la página es el aviso de 'factura no encontrada' del registro."""
    lowered = (html or "").lower()
    return any(marker in lowered for marker in _NOT_FOUND_MARKERS)
