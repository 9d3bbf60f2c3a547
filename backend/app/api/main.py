from fastapi import APIRouter

from app.api.routes import blog, chat, contact, nucleus, ollama, openai, projects, round_robin, site_settings, utils

api_router = APIRouter()
api_router.include_router(utils.router)
api_router.include_router(ollama.router)
api_router.include_router(openai.router)
api_router.include_router(nucleus.router)
api_router.include_router(round_robin.router)
api_router.include_router(blog.router)
api_router.include_router(contact.router)
api_router.include_router(projects.router)
api_router.include_router(site_settings.router)
api_router.include_router(chat.router)
