import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings
from database import (
    CHATS, MENSAJES, PRODUCTOS, USUARIOS,
    DocumentStore, create_store, now_timestamp, parse_timestamp, record_path,
)
from error_handlers import register_error_handlers
from errors import NotFoundError, StoreError, store_failure
from observability import setup_logging
from schemas import (
    ChatCreate, MessageCreate, ProductCreate, ProductUpdate, UserCreate, UserUpdate,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    app.state.store = create_store(settings)
    logger.info("Mercado API started")
    yield
    if app.state.store is not None:
        await app.state.store.close()
    logger.info("Mercado API shutting down")


app = FastAPI(title="Mercado API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


# Dependencies
def get_optional_store(request: Request) -> Optional[DocumentStore]:
    return getattr(request.app.state, "store", None)


def get_store(store: Optional[DocumentStore] = Depends(get_optional_store)) -> DocumentStore:
    if store is None:
        raise StoreError("Base de datos no configurada")
    return store


# Utils
def to_public(key: str, record: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": key, **record}


def without_password(key: str, record: Dict[str, Any]) -> Dict[str, Any]:
    public = to_public(key, record)
    public.pop("contrasena", None)
    return public


async def require_record(store: DocumentStore, path: str, message: str) -> Dict[str, Any]:
    record = await store.read(path)
    if record is None:
        raise NotFoundError(message)
    return record


# Products
@app.get("/productos")
async def list_products(store: DocumentStore = Depends(get_store)) -> List[Dict[str, Any]]:
    with store_failure("Error obteniendo productos"):
        data = await store.read(PRODUCTOS)
    if not data:
        raise NotFoundError("No hay productos disponibles")
    return [to_public(key, value) for key, value in data.items()]


@app.post("/productos", status_code=status.HTTP_201_CREATED)
async def create_product(body: ProductCreate, store: DocumentStore = Depends(get_store)):
    product = {
        "nombre": body.nombre,
        "descripcion": body.descripcion,
        "precio": body.precio,
        "foto_url": body.foto_url,
        "fecha_publicacion": now_timestamp(),
        "usuario_id": body.usuario_id,
    }
    with store_failure("Error creando producto"):
        product_id = await store.push(PRODUCTOS, product)
    logger.info("Product created", extra={"collection": PRODUCTOS, "record_id": product_id})
    return to_public(product_id, product)


@app.put("/productos/{product_id}")
async def update_product(
    product_id: str, body: ProductUpdate, store: DocumentStore = Depends(get_store),
):
    path = record_path(PRODUCTOS, product_id)
    with store_failure("Error actualizando producto"):
        existing = await require_record(store, path, "Producto no encontrado")
        changes = body.model_dump()
        await store.update(path, changes)
    logger.info("Product updated", extra={"collection": PRODUCTOS, "record_id": product_id})
    return to_public(product_id, {**existing, **changes})


@app.delete("/productos/{product_id}")
async def delete_product(product_id: str, store: DocumentStore = Depends(get_store)):
    path = record_path(PRODUCTOS, product_id)
    with store_failure("Error eliminando producto"):
        await require_record(store, path, "Producto no encontrado")
        await store.delete(path)
    logger.info("Product deleted", extra={"collection": PRODUCTOS, "record_id": product_id})
    return {"message": "Producto eliminado correctamente"}


# Users
@app.post("/usuarios", status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, store: DocumentStore = Depends(get_store)):
    user = body.model_dump()
    with store_failure("Error creando usuario"):
        user_id = await store.push(USUARIOS, user)
    logger.info("User created", extra={"collection": USUARIOS, "record_id": user_id})
    return without_password(user_id, user)


@app.get("/usuarios")
async def list_users(store: DocumentStore = Depends(get_store)) -> List[Dict[str, Any]]:
    with store_failure("Error obteniendo usuarios"):
        data = await store.read(USUARIOS)
    if not data:
        raise NotFoundError("No hay usuarios disponibles")
    return [without_password(key, value) for key, value in data.items()]


@app.get("/usuarios/{user_id}")
async def get_user(user_id: str, store: DocumentStore = Depends(get_store)):
    with store_failure("Error obteniendo datos del usuario"):
        user = await require_record(
            store, record_path(USUARIOS, user_id), f"Usuario con ID {user_id} no encontrado",
        )
    return without_password(user_id, user)


@app.put("/usuarios/{user_id}")
async def update_user(
    user_id: str, body: UserUpdate, store: DocumentStore = Depends(get_store),
):
    path = record_path(USUARIOS, user_id)
    with store_failure("Error actualizando usuario"):
        existing = await require_record(store, path, "Usuario no encontrado")
        changes = body.model_dump()
        await store.update(path, changes)
    logger.info("User updated", extra={"collection": USUARIOS, "record_id": user_id})
    return without_password(user_id, {**existing, **changes})


@app.delete("/usuarios/{user_id}")
async def delete_user(user_id: str, store: DocumentStore = Depends(get_store)):
    # Products, chats and messages of the user are left in place
    path = record_path(USUARIOS, user_id)
    with store_failure("Error eliminando usuario"):
        await require_record(store, path, "Usuario no encontrado")
        await store.delete(path)
    logger.info("User deleted", extra={"collection": USUARIOS, "record_id": user_id})
    return {"message": "Usuario eliminado correctamente"}


# Chats
@app.get("/chats/{user_id}")
async def list_user_chats(user_id: str, store: DocumentStore = Depends(get_store)):
    with store_failure("Error obteniendo chats del usuario"):
        data = await store.read(CHATS)
    if not data:
        raise NotFoundError("No hay chats para este usuario")
    return [
        to_public(key, chat)
        for key, chat in data.items()
        if user_id in (chat.get("ofertante_id"), chat.get("interesado_id"))
    ]


@app.post("/chats", status_code=status.HTTP_201_CREATED)
async def create_chat(body: ChatCreate, store: DocumentStore = Depends(get_store)):
    chat = {
        "producto_id": body.producto_id,
        "ofertante_id": body.ofertante_id,
        "interesado_id": body.interesado_id,
        "fecha_creacion": now_timestamp(),
    }
    with store_failure("Error creando chat"):
        chat_id = await store.push(CHATS, chat)
    logger.info("Chat created", extra={"collection": CHATS, "record_id": chat_id})
    return to_public(chat_id, chat)


@app.delete("/chats/{chat_id}")
async def delete_chat(chat_id: str, store: DocumentStore = Depends(get_store)):
    path = record_path(CHATS, chat_id)
    with store_failure("Error eliminando chat"):
        await require_record(store, path, "Chat no encontrado")
        await store.delete(path)
    logger.info("Chat deleted", extra={"collection": CHATS, "record_id": chat_id})
    return {"message": "Chat eliminado correctamente"}


# Messaging
@app.post("/mensajes", status_code=status.HTTP_201_CREATED)
async def send_message(body: MessageCreate, store: DocumentStore = Depends(get_store)):
    message = {
        "chat_id": body.chat_id,
        "emisor_id": body.emisor_id,
        "contenido": body.contenido,
        "fecha_envio": now_timestamp(),
    }
    with store_failure("Error creando mensaje"):
        message_id = await store.push(MENSAJES, message)
    logger.info("Message created", extra={"collection": MENSAJES, "record_id": message_id})
    return to_public(message_id, message)


@app.get("/mensajes/{chat_id}")
async def list_chat_messages(chat_id: str, store: DocumentStore = Depends(get_store)):
    with store_failure("Error obteniendo mensajes del chat"):
        data = await store.read(MENSAJES)
    if not data:
        raise NotFoundError("No hay mensajes para este chat")
    messages = [
        to_public(key, message)
        for key, message in data.items()
        if message.get("chat_id") == chat_id
    ]
    messages.sort(key=lambda m: parse_timestamp(m.get("fecha_envio")))
    return messages


@app.get("/")
def read_root():
    return {"message": "Mercado API en ejecución"}


@app.get("/test")
async def test_database(store: Optional[DocumentStore] = Depends(get_optional_store)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
        "database_name": settings.database_name,
        "connection_status": "Not Connected",
    }
    if store is None:
        return response
    if await store.ping():
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    else:
        response["database"] = "⚠️ Configured but not reachable"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
