from contextlib import asynccontextmanager
from typing import List, Optional

from circuitbreaker import circuit
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from booking_core.cache import SimpleTTLCache
from booking_core.config import get_settings
from booking_core.database import Base, engine, get_db
from booking_core.logging_middleware import add_audit_middleware
from booking_core.models import Resource, ResourceType
from booking_core.rate_limit import READ_LIMIT, apply_rate_limiter, limiter
from booking_core.schemas import ResourceRead

settings = get_settings()
resource_list_cache: SimpleTTLCache[list[ResourceRead]] = SimpleTTLCache(ttl=settings.resource_cache_ttl)


def _list_key(
    resource_type: Optional[ResourceType],
    location: Optional[str],
    min_capacity: Optional[int],
    features: Optional[List[str]],
) -> str:
    type_part = resource_type.value if resource_type else ""
    return f"resource-list:{type_part}:{location or ''}:{min_capacity or ''}:{','.join(sorted(features or []))}"


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Resources Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "resources")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "resources"}


@circuit(failure_threshold=5, recovery_timeout=60)
def _load_resources(
    db: Session,
    resource_type: Optional[ResourceType],
    location: Optional[str],
    min_capacity: Optional[int],
    features: Optional[List[str]],
) -> list[ResourceRead]:
    query = db.query(Resource)
    if resource_type:
        query = query.filter(Resource.type == resource_type)
    if min_capacity:
        query = query.filter(Resource.capacity >= min_capacity)
    if location:
        query = query.filter(Resource.location.ilike(f"%{location}%"))
    resources = query.order_by(Resource.id).all()
    if features:
        required = set(features)
        resources = [resource for resource in resources if required.issubset(set(resource.features or []))]
    return [ResourceRead.model_validate(resource) for resource in resources]


@app.get("/resources", response_model=List[ResourceRead])
@limiter.limit(READ_LIMIT)
def list_resources(
    request: Request,
    resource_type: Optional[ResourceType] = Query(None, alias="type"),
    location: Optional[str] = None,
    min_capacity: Optional[int] = Query(None, ge=1),
    features: Optional[List[str]] = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ResourceRead]:
    key = _list_key(resource_type, location, min_capacity, features)
    return resource_list_cache.get_or_load(
        key, lambda: _load_resources(db, resource_type, location, min_capacity, features)
    )


@app.get("/resources/{resource_id}", response_model=ResourceRead)
@limiter.limit(READ_LIMIT)
def get_resource(request: Request, resource_id: int, db: Session = Depends(get_db)) -> Resource:
    resource = db.query(Resource).filter(Resource.id == resource_id).first()
    if not resource:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")
    return resource
