"""Uniform response envelope shared by every endpoint"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(
    mensaje: str = "Operación exitosa", datos: Optional[Any] = None, status_code: int = 200
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "mensaje": mensaje, "datos": jsonable_encoder(datos)},
    )


def error_response(
    status_code: int = 500, mensaje: str = "Error en el servidor", errores: Optional[Any] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "mensaje": mensaje, "errores": jsonable_encoder(errores)},
    )
