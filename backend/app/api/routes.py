from fastapi import APIRouter

from app.api.channels import router as channels_router
from app.api.groups import router as groups_router
from app.api.messages import router as messages_router
from app.api.reactions import router as reactions_router
from app.api.search import router as search_router
from app.api.unread import router as unread_router

router = APIRouter()

chat_router = APIRouter(prefix="/chat")
chat_router.include_router(channels_router)
chat_router.include_router(groups_router)
chat_router.include_router(messages_router)
chat_router.include_router(reactions_router)
chat_router.include_router(unread_router)
chat_router.include_router(search_router)

router.include_router(chat_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Conversa API"}
