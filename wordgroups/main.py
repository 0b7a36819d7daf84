import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import admin_auth, config
from .errors import GameError
from .game_logic import GameLogic
from .game_stats import GameStats
from .monitoring import monitor, setup_logging
from .puzzle import Puzzle
from .puzzle_service import PuzzleService
from .schema import (
    GeneratePuzzleRequest, LoginRequest, SetDailyRequest, StartGameRequest, SubmitGuessRequest,
    SyncStatsRequest,
)
from .session_manager import SessionManager

setup_logging()
logger = logging.getLogger(__name__)
logger.info(f"Loaded .env from: {config.env_path() or '[none]'}; "
            f"cloud storage={config.use_cloud_storage()}; environment={config.environment()}")

app = FastAPI(title="WordGroups Puzzle API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)


@lru_cache(maxsize=None)
def get_manager() -> SessionManager:
    return SessionManager()


@lru_cache(maxsize=None)
def get_stats() -> GameStats:
    return GameStats(get_manager())


@lru_cache(maxsize=None)
def get_game() -> GameLogic:
    return GameLogic(get_manager(), get_stats())


@lru_cache(maxsize=None)
def get_puzzles() -> PuzzleService:
    return PuzzleService(get_manager())


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        monitor.track_error(type(exc).__name__)
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = [str(e.get('msg', '')) for e in exc.errors()]
    logger.warning(f"{request.method} {request.url.path} invalid request: {messages}")
    return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "Invalid request"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    monitor.track_error(type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def player_puzzle(puzzle: Puzzle) -> dict:
    """Puzzle as sent to players: the grid and the tier colors, not the groups."""
    view = puzzle.public_view()
    view['categories'] = [{'tier': c.tier.value, 'color': c.color} for c in puzzle.categories]
    return view


@app.get("/health")
def health():
    return {"status": "ok", "environment": config.environment()}


# --- game ---
@app.get("/game/daily")
def daily_puzzle(puzzles: PuzzleService = Depends(get_puzzles)):
    return player_puzzle(puzzles.get_daily_puzzle())


@app.get("/game/random")
def random_puzzle(puzzles: PuzzleService = Depends(get_puzzles)):
    return player_puzzle(puzzles.get_random_approved_puzzle())


@app.post("/game/start")
def start_game(req: StartGameRequest, game: GameLogic = Depends(get_game)):
    result = game.start_game(req.puzzle_id, req.username)
    return {"session_id": result['session_id'], "puzzle": player_puzzle(result['puzzle'])}


@app.post("/game/submit")
def submit_guess(req: SubmitGuessRequest, game: GameLogic = Depends(get_game)):
    return game.submit_guess(req.session_id, req.selected_words).model_dump(mode='json')


@app.get("/game/{session_id}")
def get_session(session_id: str, game: GameLogic = Depends(get_game)):
    return game.get_session(session_id).model_dump(mode='json')


# --- stats ---
@app.get("/stats/leaderboard/top")
def leaderboard(limit: int = 10, stats: GameStats = Depends(get_stats)):
    return [s.model_dump(mode='json') for s in stats.get_leaderboard(limit)]


@app.get("/stats/{username}")
def player_stats(username: str, stats: GameStats = Depends(get_stats)):
    return stats.get_player_stats(username).model_dump(mode='json')


@app.post("/stats/sync")
def sync_stats(req: SyncStatsRequest, stats: GameStats = Depends(get_stats)):
    return stats.sync_local_stats(req.model_dump()).model_dump(mode='json')


# --- admin ---
@app.post("/admin/login")
def admin_login(req: LoginRequest):
    return admin_auth.login(req.password)


@app.post("/admin/logout", dependencies=[Depends(admin_auth.require_admin)])
def admin_logout():
    logger.info("Admin logged out")
    return {"message": "Logged out successfully"}


@app.post("/admin/puzzle/generate", dependencies=[Depends(admin_auth.require_admin)])
async def generate_puzzle(req: GeneratePuzzleRequest, puzzles: PuzzleService = Depends(get_puzzles)):
    puzzle = await puzzles.generate_puzzle(req.target_difficulty)
    return puzzle.model_dump(mode='json')


@app.get("/admin/puzzle/all", dependencies=[Depends(admin_auth.require_admin)])
def all_puzzles(puzzles: PuzzleService = Depends(get_puzzles)):
    return [p.model_dump(mode='json') for p in puzzles.list_puzzles()]


@app.put("/admin/puzzle/{puzzle_id}/approve", dependencies=[Depends(admin_auth.require_admin)])
def approve_puzzle(puzzle_id: str, puzzles: PuzzleService = Depends(get_puzzles)):
    return puzzles.approve_puzzle(puzzle_id).model_dump(mode='json')


@app.delete("/admin/puzzle/{puzzle_id}/reject", dependencies=[Depends(admin_auth.require_admin)])
def reject_puzzle(puzzle_id: str, puzzles: PuzzleService = Depends(get_puzzles)):
    puzzles.reject_puzzle(puzzle_id)
    return {"message": "Puzzle rejected and deleted"}


@app.post("/admin/daily", dependencies=[Depends(admin_auth.require_admin)])
def set_daily(req: SetDailyRequest, puzzles: PuzzleService = Depends(get_puzzles)):
    return puzzles.set_daily_puzzle(req.date, req.puzzle_id).model_dump(mode='json')


@app.get("/admin/stats", dependencies=[Depends(admin_auth.require_admin)])
def admin_stats(puzzles: PuzzleService = Depends(get_puzzles)):
    return puzzles.get_admin_stats()


@app.get("/admin/logs", dependencies=[Depends(admin_auth.require_admin)])
def admin_logs(limit: int = 50, puzzles: PuzzleService = Depends(get_puzzles)):
    return [log.model_dump(mode='json') for log in puzzles.get_admin_logs(limit)]


@app.get("/admin/quota", dependencies=[Depends(admin_auth.require_admin)])
def generation_quota(puzzles: PuzzleService = Depends(get_puzzles)):
    return puzzles.quota.status()
