from typing import List, Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cafe_import.core.config import settings

# El cliente necesita leer la sesión del flujo de importación
EXPOSED_HEADERS = ["X-Session-Id"]


def parse_origins(value: Union[List[str], str, None], environment: str = "production") -> List[str]:
    """
    Orígenes permitidos a partir de BACKEND_CORS_ORIGINS.

    Acepta lista o texto separado por comas. En desarrollo, o sin orígenes
    configurados, se permite cualquier origen.
    """
    if isinstance(value, str):
        origins = [o.strip() for o in value.split(",") if o.strip()]
    else:
        origins = [o.strip() for o in (value or []) if o and o.strip()]

    if environment == "development" or not origins:
        return ["*"]
    return origins


def setup_cors(app: FastAPI) -> None:
    origins = parse_origins(settings.backend_cors_origins, settings.environment)
    wildcard = origins == ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=EXPOSED_HEADERS,
        # credenciales solo con orígenes explícitos
        allow_credentials=not wildcard,
    )
