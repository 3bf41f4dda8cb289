import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException, BackgroundTasks, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
import config, dispatch, printer, watcher

logger = logging.getLogger(__name__)

def require_token(request: Request):
    token = request.headers.get('X-API-Token') or request.query_params.get('token')
    if token != config.API_TOKEN:
        raise HTTPException(status_code=401, detail='unauthorized')

def _on_resume(name: str):
    logger.info("Resumed printer: %s", name)

def _startup(app: FastAPI):
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info('Configured printer: "%s"', config.PRINTER_NAME)
    try:
        printers = printer.list_printers()
        logger.info("Initial printer check: found %d printer(s)", len(printers))
        for p in printers:
            logger.info("  - %s (%s) - %s%s%s", p.name, p.connection_type, p.status,
                        ' [default]' if p.is_default else '',
                        ' [configured]' if p.name == config.PRINTER_NAME else '')
    except printer.PrinterError as e:
        logger.warning("Could not check printers at startup: %s", e)

    logger.info("Starting printer watcher for: %s",
                ', '.join(config.WATCH_PRINTERS) or 'all USB/Bluetooth printers')
    # owned by the app, started once and stopped at shutdown
    app.state.monitor = watcher.start_monitor(
        interval=config.WATCH_INTERVAL,
        printer_names=config.WATCH_PRINTERS,
        on_resume=_on_resume,
    )

def _shutdown(app: FastAPI):
    monitor = getattr(app.state, "monitor", None)
    if monitor is not None:
        monitor.stop()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # the initial printer check shells out, keep it off the event loop
    await run_in_threadpool(_startup, app)
    yield
    _shutdown(app)

app = FastAPI(title="Sticker Print Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # change in production
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get('/api/printers')
def api_printers(request: Request):
    require_token(request)
    try:
        printers = printer.list_printers()
    except printer.PrinterError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return JSONResponse({
        'configured': config.PRINTER_NAME,
        'available': [p.model_dump() for p in printers],
    })

@app.get('/api/printers/{name}/media')
def api_media_sizes(request: Request, name: str):
    require_token(request)
    try:
        return JSONResponse({'printer': name, 'media': printer.get_media_sizes(name)})
    except printer.PrinterError as e:
        raise HTTPException(status_code=500, detail=str(e))

@app.post('/api/printers/{name}/resume')
def api_resume(request: Request, name: str):
    require_token(request)
    try:
        return JSONResponse(printer.check_and_resume_printer(name).model_dump())
    except printer.PrinterError as e:
        raise HTTPException(status_code=500, detail=str(e))

@app.post('/api/print')
async def api_print(request: Request, background_tasks: BackgroundTasks,
                    prompt: Optional[str] = None, printer_name: Optional[str] = None):
    """
    Print a generated sticker image and echo it back.

    The image is the raw request body. Printing runs after the response is
    sent, so a printer problem never holds up or replaces the image.
    """
    require_token(request)
    image = await request.body()
    if not image:
        raise HTTPException(status_code=400, detail='image body is required')
    if prompt:
        logger.info('Sticker prompt: "%s"', prompt)
    logger.info("Queueing print of %d byte image", len(image))
    background_tasks.add_task(dispatch.dispatch_image_quietly, image, printer_name)
    return Response(content=image, media_type=request.headers.get('content-type') or 'image/png')

@app.get('/api/jobs/{job_id}')
def api_job(request: Request, job_id: str):
    require_token(request)
    try:
        return JSONResponse({'job_id': job_id, 'status': printer.get_job_status(job_id)})
    except printer.PrinterError as e:
        raise HTTPException(status_code=500, detail=str(e))

@app.delete('/api/jobs/{job_id}')
def api_cancel_job(request: Request, job_id: str):
    require_token(request)
    try:
        printer.cancel_job(job_id)
    except printer.PrinterError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return JSONResponse({'job_id': job_id, 'cancelled': True})

if __name__ == '__main__':
    import uvicorn
    uvicorn.run('main:app', host=config.HOST, port=config.PORT, reload=False)
