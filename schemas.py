"""
Request Schemas for the marketplace API

One model per request body. A field counts as missing when it is absent,
null or an empty string; any failure here is answered with a 400.
Extra fields in the body are ignored.
"""

from typing import Annotated, Union

from pydantic import BaseModel, Field

# Non-empty text; whitespace is kept as sent
Text = Annotated[str, Field(min_length=1)]

# Zero is a valid price; ints must fit in 8 bytes and floats must be finite
Price = Union[
    Annotated[int, Field(ge=0, le=2**63 - 1)],
    Annotated[float, Field(ge=0, allow_inf_nan=False)],
]


# Items published by a user
class ProductCreate(BaseModel):
    nombre: Text
    descripcion: Text
    precio: Price
    foto_url: Text = Field(..., description="Public URL of the product photo")
    usuario_id: Text = Field(..., description="Publishing user id (not checked)")


class ProductUpdate(BaseModel):
    nombre: Text
    descripcion: Text
    precio: Price
    foto_url: Text


# Marketplace users; contrasena is stored but never returned
class UserCreate(BaseModel):
    nombre: Text
    apellido: Text
    correo: Text
    contrasena: Text
    contacto: Text


class UserUpdate(BaseModel):
    nombre: Text
    apellido: Text
    correo: Text
    contacto: Text


# Conversation between the user offering a product and an interested user
class ChatCreate(BaseModel):
    producto_id: Text
    ofertante_id: Text
    interesado_id: Text


class MessageCreate(BaseModel):
    chat_id: Text
    emisor_id: Text
    contenido: Text
