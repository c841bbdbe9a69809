from fastapi import APIRouter, Depends

from ..config import settings
from ..errors import SUCCESS
from ..schemas import yappy_response
from ..security import validate_yappy_auth, require_open_session

router = APIRouter(prefix="/api/v1", tags=["collection-method"])


def configured_collections() -> list:
    """Collection methods configured for this commerce."""
    return [
        {
            "alias": "test01",
            "type": "DIRECTORIO",
        },
        {
            "alias": "boton01",
            "type": "BOTON_DE_PAGO",
            "details": [
                {"id": "url", "value": f"{settings.base_url}/checkout"},
            ],
        },
        {
            "alias": "integration01",
            "type": "INTEGRACION_YAPPY",
            "details": [
                {"id": "groupId", "value": "group01"},
                {"id": "deviceId", "value": "caja01"},
            ],
        },
        {
            "alias": "pos01",
            "type": "PUNTO_DE_VENTA",
            "details": [
                {"id": "terminalId", "value": "123456"},
            ],
        },
    ]


@router.get("/collection-method", dependencies=[Depends(validate_yappy_auth), Depends(require_open_session)])
async def collection_method():
    return yappy_response(SUCCESS, {"collections": configured_collections()})
