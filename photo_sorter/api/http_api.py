import logging
from typing import Callable, TypeVar

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.env import configure_logging, database_url, load_dotenv_if_present
from photo_sorter.core.errors import (
    EngineError,
    InvalidInputError,
    NotFoundError,
    StoreUnavailableError,
)
from photo_sorter.index import SqlEmbeddingStore, init_db, session_factory
from photo_sorter.matching import (
    estimate_era,
    find_duplicates,
    find_similar_photos,
    find_similar_to_album,
    find_subject_outliers,
    match_subject_faces,
    scan_outliers,
    scan_subjects,
    suggest_albums,
    suggest_people_for_face,
)

app = FastAPI(title="Photo Sorter API")

load_dotenv_if_present()
configure_logging()
logger = logging.getLogger(__name__)

DATABASE_URL = database_url()
engine = init_db(DATABASE_URL)
SessionLocal = session_factory(engine)
store = SqlEmbeddingStore(SessionLocal)
config = EngineConfig.from_env()

T = TypeVar("T")


def get_store() -> SqlEmbeddingStore:
    return store


def get_config() -> EngineConfig:
    return config


def _run(call: Callable[[], T]) -> T:
    """Invoke an engine call, translating engine errors into HTTP statuses."""
    try:
        return call()
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except EngineError as exc:
        logger.error("Engine call failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


class FaceMatchRequest(BaseModel):
    person_name: str
    threshold: float | None = None
    limit: int | None = None


class SubjectScanRequest(BaseModel):
    person_names: list[str] | None = None
    threshold: float | None = None
    limit: int | None = None
    include_outliers: bool = False
    outliers_only: bool = False


class FaceSuggestRequest(BaseModel):
    embedding: list[float]
    threshold: float | None = None
    limit: int | None = None


class DuplicatesRequest(BaseModel):
    album_uid: str | None = None
    threshold: float | None = None
    limit: int | None = None


class AlbumSuggestRequest(BaseModel):
    photo_uids: list[str] | None = None
    threshold: float | None = None
    top_k: int | None = None


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/faces/match")
def match_faces(
    req: FaceMatchRequest,
    store: SqlEmbeddingStore = Depends(get_store),
    cfg: EngineConfig = Depends(get_config),
) -> dict:
    result = _run(
        lambda: match_subject_faces(
            store, req.person_name, distance_threshold=req.threshold, limit=req.limit, config=cfg
        )
    )
    return result.model_dump(mode="json")


@app.post("/faces/outliers")
def face_outliers(
    req: FaceMatchRequest,
    store: SqlEmbeddingStore = Depends(get_store),
    cfg: EngineConfig = Depends(get_config),
) -> dict:
    result = _run(
        lambda: find_subject_outliers(
            store, req.person_name, distance_threshold=req.threshold, limit=req.limit, config=cfg
        )
    )
    return result.model_dump(mode="json")


@app.post("/faces/scan")
def scan_faces(
    req: SubjectScanRequest,
    store: SqlEmbeddingStore = Depends(get_store),
    cfg: EngineConfig = Depends(get_config),
) -> dict:
    if req.outliers_only:
        results = _run(
            lambda: scan_outliers(
                store, req.person_names, distance_threshold=req.threshold, limit=req.limit, config=cfg
            )
        )
    else:
        results = _run(
            lambda: scan_subjects(
                store,
                req.person_names,
                distance_threshold=req.threshold,
                limit=req.limit,
                include_outliers=req.include_outliers,
                config=cfg,
            )
        )
    return {"results": [result.model_dump(mode="json") for result in results]}


@app.post("/faces/suggest")
def suggest_faces(
    req: FaceSuggestRequest,
    store: SqlEmbeddingStore = Depends(get_store),
    cfg: EngineConfig = Depends(get_config),
) -> dict:
    suggestions = _run(
        lambda: suggest_people_for_face(
            store, req.embedding, distance_threshold=req.threshold, limit=req.limit, config=cfg
        )
    )
    return {"suggestions": [s.model_dump(mode="json") for s in suggestions]}


@app.post("/photos/duplicates")
def duplicates(
    req: DuplicatesRequest,
    store: SqlEmbeddingStore = Depends(get_store),
    cfg: EngineConfig = Depends(get_config),
) -> dict:
    result = _run(
        lambda: find_duplicates(
            store,
            album_uid=req.album_uid,
            distance_threshold=req.threshold,
            group_limit=req.limit,
            config=cfg,
        )
    )
    return result.model_dump(mode="json")


@app.post("/albums/suggest")
def albums_suggest(
    req: AlbumSuggestRequest,
    store: SqlEmbeddingStore = Depends(get_store),
    cfg: EngineConfig = Depends(get_config),
) -> dict:
    result = _run(
        lambda: suggest_albums(
            store,
            photo_uids=req.photo_uids,
            similarity_threshold=req.threshold,
            top_k=req.top_k,
            config=cfg,
        )
    )
    return result.model_dump(mode="json")


@app.get("/photos/{photo_uid}/similar")
def similar_photos(
    photo_uid: str,
    threshold: float | None = None,
    limit: int | None = None,
    store: SqlEmbeddingStore = Depends(get_store),
    cfg: EngineConfig = Depends(get_config),
) -> dict:
    results = _run(
        lambda: find_similar_photos(
            store, photo_uid, distance_threshold=threshold, limit=limit, config=cfg
        )
    )
    return {"photo_uid": photo_uid, "results": [r.model_dump(mode="json") for r in results]}


@app.get("/photos/{photo_uid}/era")
def photo_era(photo_uid: str, store: SqlEmbeddingStore = Depends(get_store)) -> dict:
    result = _run(lambda: estimate_era(store, photo_uid))
    return result.model_dump(mode="json")


@app.get("/albums/{album_uid}/similar")
def album_similar(
    album_uid: str,
    threshold: float | None = None,
    limit: int | None = None,
    store: SqlEmbeddingStore = Depends(get_store),
    cfg: EngineConfig = Depends(get_config),
) -> dict:
    result = _run(
        lambda: find_similar_to_album(
            store, album_uid, distance_threshold=threshold, limit=limit, config=cfg
        )
    )
    return result.model_dump(mode="json")
