import asyncio
import contextlib
import logging

import auth
import config
import database
import schemas
import uvicorn
from errors import ShortlinkError
from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from log_sink import LogSink, get_log_sink
from starlette.background import BackgroundTask

# --- Logging ---
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger("shortlinks")

PACKAGE = "url-shortener"


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if config.SWEEP_INTERVAL_SECONDS > 0:
        sweeper = asyncio.create_task(database.run_sweeper(database.store, config.SWEEP_INTERVAL_SECONDS))
        logger.info("Sweeping expired links every %ss", config.SWEEP_INTERVAL_SECONDS)
    yield
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title="URL Shortener",
    description="Shorten URLs, follow short links and inspect their click statistics.",
    version="1.0.0",
    lifespan=lifespan,
)

# External collaborators, replaceable from tests
app.state.log_sink = LogSink(config.LOG_SERVICE_URL, timeout=config.EXTERNAL_TIMEOUT_SECONDS)
app.state.auth_client = auth.AuthClient(config.AUTH_SERVICE_URL, timeout=config.EXTERNAL_TIMEOUT_SECONDS)

# --- CORS (allow frontend dev servers, etc.) ---
origins = ["*"] if config.ENVIRONMENT == "dev" else [config.PUBLIC_BASE_URL]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def short_link(shortcode: str) -> str:
    return f"http://{config.HOST}:{config.PORT}/{shortcode}"


# ---------- Errors ----------
@app.exception_handler(ShortlinkError)
async def shortlink_error_handler(request: Request, exc: ShortlinkError):
    sink = request.app.state.log_sink
    message = f"{request.method} {request.url.path} failed: {exc.message}"
    return JSONResponse(
        {"error": exc.message},
        status_code=exc.status_code,
        background=BackgroundTask(sink.send, "backend", exc.log_level, PACKAGE, message),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse({"error": f"Invalid request: {problems}"}, status_code=400)


# ---------- Service ----------
@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
def root():
    return "URL Shortener API"


# Health check (useful for uptime monitors & load balancers)
@app.get("/health", include_in_schema=False)
def health(store=Depends(database.get_store)):
    return {"status": "ok", "env": config.ENVIRONMENT, "links": len(store)}


@app.post("/login")
async def login(
    login_in: schemas.LoginIn,
    background_tasks: BackgroundTasks,
    client=Depends(auth.get_auth_client),
    sink=Depends(get_log_sink),
):
    credentials = login_in.model_dump(by_alias=True)
    missing = auth.missing_fields(credentials)
    if missing:
        background_tasks.add_task(
            sink.send, "backend", "warn", "auth", f"Login attempt failed: Missing parameters: {', '.join(missing)}"
        )
        return JSONResponse(
            {"error": "Missing required parameters", "missingParams": missing},
            status_code=400,
        )

    email = credentials["email"]
    background_tasks.add_task(
        sink.send,
        "backend",
        "info",
        "auth",
        f"Authentication attempt for user: {email}, name: {credentials['name']}, rollNo: {credentials['rollNo']}",
    )
    try:
        status_code, data = await client.authenticate(credentials)
    except auth.AuthServiceError as exc:
        logger.warning("Authentication service unavailable: %s", exc)
        background_tasks.add_task(sink.send, "backend", "error", "auth", f"Authentication error: {exc}")
        return JSONResponse(
            {"success": False, "message": "Authentication service unavailable", "error": str(exc)},
            status_code=500,
        )

    if auth.is_bearer(data):
        background_tasks.add_task(sink.send, "backend", "info", "auth", f"Authentication successful for user: {email}")
        return {"success": True, "message": "Authentication successful", "data": data}

    background_tasks.add_task(
        sink.send, "backend", "error", "auth", f"Authentication failed for user: {email}, status: {status_code}"
    )
    return JSONResponse(
        {
            "success": False,
            "message": "Authentication failed: Invalid credentials",
            "error": data.get("error") or "Unknown error",
        },
        status_code=401,
    )


# ---------- Short URLs ----------
@app.post("/shorturls", response_model=schemas.ShortUrlOut, status_code=201)
def create_short_url(
    link_in: schemas.ShortUrlCreate,
    background_tasks: BackgroundTasks,
    store=Depends(database.get_store),
    sink=Depends(get_log_sink),
    user=Depends(auth.get_current_user),
):
    record = store.create(link_in.url, validity_minutes=link_in.validity, shortcode=link_in.shortcode)
    link = short_link(record.shortcode)
    logger.info("Created short URL %s for %s by=%s", link, record.original_url, user)
    background_tasks.add_task(sink.send, "backend", "info", PACKAGE, f"Created short URL {link} for {record.original_url}")
    return schemas.ShortUrlOut(short_link=link, expiry=record.expires_at)


@app.get("/shorturls/{shortcode}", response_model=schemas.StatsOut)
def short_url_stats(
    shortcode: str,
    background_tasks: BackgroundTasks,
    store=Depends(database.get_store),
    sink=Depends(get_log_sink),
    user=Depends(auth.get_current_user),
):
    record = store.stats(shortcode)
    background_tasks.add_task(
        sink.send,
        "backend",
        "info",
        PACKAGE,
        f"Statistics accessed for {shortcode}: {record.total_clicks} total clicks",
    )
    return schemas.StatsOut(
        shortcode=record.shortcode,
        total_clicks=record.total_clicks,
        original_url=record.original_url,
        created_at=record.created_at,
        expiry=record.expires_at,
        click_data=[
            schemas.ClickOut(timestamp=click.timestamp, referrer=click.referrer, user_agent=click.user_agent)
            for click in record.clicks
        ],
    )


# Redirect /{shortcode}; must stay after every other route
@app.get("/{shortcode}", include_in_schema=False)
def redirect_short_url(
    shortcode: str,
    request: Request,
    background_tasks: BackgroundTasks,
    store=Depends(database.get_store),
    sink=Depends(get_log_sink),
):
    referrer = request.headers.get("referer") or request.headers.get("referrer")
    url = store.resolve(shortcode, referrer=referrer, user_agent=request.headers.get("user-agent"))
    background_tasks.add_task(sink.send, "backend", "debug", PACKAGE, f"Redirecting {shortcode} to {url}")
    return RedirectResponse(url=url, status_code=302)


def run():
    uvicorn.run("main:app", host=config.HOST, port=config.PORT)
