# cafe_import/core/config.py
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List


class Settings(BaseSettings):
    # --- Core ---
    environment: str = Field("development", env="ENVIRONMENT")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    # --- Base de datos ---
    database_url: str = Field("sqlite:///./cafe_import.db", env="DATABASE_URL")

    # --- CORS ---
    backend_cors_origins: List[str] | str = Field("", env="BACKEND_CORS_ORIGINS")

    # ============================================================================
    # REGISTRO DE FACTURAS ELECTRÓNICAS (DGI Panamá)
    # ============================================================================
    # La DGI publica cada factura en una página HTML consultable por CUFE.
    # El QR impreso en el comprobante apunta a otra ruta (FacturasPorQR) que
    # lleva el CUFE en el parámetro chFE.
    # ============================================================================

    registry_cufe_url_template: str = Field(
        "https://dgi-fep.mef.gob.pa/Consultas/FacturasPorCUFE/{cufe}",
        env="REGISTRY_CUFE_URL_TEMPLATE",
        description="URL de consulta por CUFE ({cufe} se sustituye)"
    )

    registry_qr_url_template: str = Field(
        "https://dgi-fep.mef.gob.pa/Consultas/FacturasPorQR?chFE={cufe}",
        env="REGISTRY_QR_URL_TEMPLATE",
        description="Forma de los enlaces QR impresos en los comprobantes"
    )

    registry_qr_marker: str = Field(
        "facturasporqr",
        env="REGISTRY_QR_MARKER",
        description="Marcador de ruta que identifica un enlace QR (sin distinguir mayúsculas)"
    )

    registry_user_agent: str = Field(
        "CafeImport/1.0 (+importador de facturas electronicas)",
        env="REGISTRY_USER_AGENT"
    )

    registry_timeout_seconds: float = Field(
        20.0,
        env="REGISTRY_TIMEOUT_SECONDS",
        description="Timeout explícito de la consulta al registro"
    )

    cufe_min_length: int = Field(
        40,
        env="CUFE_MIN_LENGTH",
        description="Longitud mínima de un CUFE válido (contrato del registro)"
    )

    # --- Flujo de importación ---
    flow_close_delay_seconds: float = Field(0.3, env="FLOW_CLOSE_DELAY_SECONDS")
    notification_buffer_size: int = Field(20, env="NOTIFICATION_BUFFER_SIZE")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
