from fastapi import FastAPI

from studio.deps import close_db, close_http, init_db, init_http
from studio.errors import register_exception_handlers
from studio.logging_config import configure_logging

# Routers
from studio.routers import accounts, auth_link, platform_post, posts, scheduler_api, workspaces

configure_logging()

app = FastAPI(title="Social Studio API", version="1.0.0")
register_exception_handlers(app)

@app.on_event("startup")
def _startup():
    init_db()
    init_http()

@app.on_event("shutdown")
def _shutdown():
    scheduler_api.shutdown_scheduler()
    close_http()
    close_db()

@app.get("/")
def root():
    return {"message": "Social Studio API is running!"}

@app.get("/health")
def health():
    return {"status": "ok"}

# Mount routes
app.include_router(workspaces.router)         # /workspaces/*
app.include_router(posts.router)              # /posts/*
app.include_router(accounts.router)           # /accounts
app.include_router(auth_link.router)          # /auth/link/*, /auth/callback/*
app.include_router(scheduler_api.router)      # /scheduler/*
app.include_router(platform_post.router)      # /{platform}/post
