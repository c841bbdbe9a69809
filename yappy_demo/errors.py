"""
Yappy status catalogue.

Every response of the /api/v1 routes carries one of these code/description
pairs inside the ``status`` object of the envelope. Descriptions are the
provider's own (Spanish) texts.
"""
from typing import NamedTuple


class YappyStatus(NamedTuple):
    code: str
    description: str


SUCCESS = YappyStatus("YP-0000", "Se ha realizado la ejecución del servicio correctamente")
NO_DATA = YappyStatus(
    "YP-0001",
    "Se ha realizado la ejecución del servicio correctamente, pero no se encontraron datos relacionados con la búsqueda",
)
PROCESSING_ERROR = YappyStatus(
    "YP-0002", "Error, ha ocurrido un error en procesar los datos. Contacte al administrador"
)
MISSING_HEADERS = YappyStatus("YP-0008", "Error, cabeceras obligatorias faltantes en la peticion")
INVALID_HASH = YappyStatus("YP-0009", "Error, el código de autenticación no es válido")
INVALID_BODY = YappyStatus(
    "YP-0010", "Error, uno o mas campos del cuerpo de la peticion no cumplen con los valores enumerados"
)
INVALID_SESSION = YappyStatus("YP-0011", "Error, token de sesión inválido o expirado")
REVERSAL_ERROR = YappyStatus("YP-0013", "Error, ha ocurrido un error en la ejecucion de la reversa.")
REVERSAL_SETTLED = YappyStatus("YP-0014", "Error, la reversa no puede ser procesada porque ya se liquido.")
REVERSAL_FAILED_TXN = YappyStatus(
    "YP-0015",
    "La transaccion que se intenta reversar posee un estado fallido. No se requieren acciones adicionales.",
)
REVERSAL_ALREADY_REVERSED = YappyStatus(
    "YP-0016",
    "La transaccion que se intenta reversar posee un estado reversado. No se requieren acciones adicionales.",
)
TOO_MANY_ALIASES = YappyStatus("YP-0039", "Error, la cantidad de alias excede el máximo permitido")
LIMIT_OUT_OF_RANGE = YappyStatus("YP-0040", "Error, el límite de consulta está fuera del rango permitido")
GENERIC_FAILURE = YappyStatus("YP-9999", "Error, el servicio ha tardado en responder")


class YappyError(Exception):
    """Raised by handlers and dependencies; rendered as a Yappy envelope."""

    def __init__(self, status: YappyStatus, http_status: int = 400):
        super().__init__(f"{status.code}: {status.description}")
        self.status = status
        self.http_status = http_status
