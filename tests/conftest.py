import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")

from booking_core.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from booking_core.auth import create_access_token  # noqa: E402
from booking_core.database import Base, SessionLocal, engine  # noqa: E402
from booking_core.models import (  # noqa: E402
    Booking,
    BookingStatus,
    Resource,
    ResourceType,
    RoleEnum,
    User,
    WorkflowNode,
)
from booking_core.workflow import WorkflowDefinition, WorkflowStep  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.resources.app import app as resources_app, resource_list_cache  # noqa: E402

JAN_1_9AM = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    resource_list_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def bookings_client() -> Generator[TestClient, None, None]:
    with TestClient(bookings_app) as client:
        yield client


@pytest.fixture()
def resources_client() -> Generator[TestClient, None, None]:
    with TestClient(resources_app) as client:
        yield client


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    def _make(username: str, *roles: RoleEnum, name: str | None = None) -> User:
        user = User(
            name=name or username.title(),
            username=username,
            email=f"{username}@example.com",
            department="Operations",
            roles=[role.value for role in roles or (RoleEnum.EMPLOYEE,)],
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_resource(db_session) -> Callable[..., Resource]:
    def _make(
        name: str = "Focus Room",
        resource_type: ResourceType = ResourceType.ROOM,
        capacity: int | None = 6,
        location: str = "Floor 2",
        features: list[str] | None = None,
    ) -> Resource:
        resource = Resource(
            name=name,
            type=resource_type,
            capacity=capacity,
            location=location,
            features=features if features is not None else ["tv"],
        )
        db_session.add(resource)
        db_session.commit()
        db_session.refresh(resource)
        return resource

    return _make


@pytest.fixture()
def set_workflow(db_session) -> Callable[..., list[WorkflowNode]]:
    """Replace the active workflow with ``(name, role)`` steps in order."""

    def _set(*steps: tuple[str, RoleEnum]) -> list[WorkflowNode]:
        db_session.query(WorkflowNode).delete()
        nodes = [
            WorkflowNode(name=name, approver_role=role, sort_order=index)
            for index, (name, role) in enumerate(steps)
        ]
        db_session.add_all(nodes)
        db_session.commit()
        return nodes

    return _set


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token({"sub": user.username})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def new_booking() -> Callable[..., Booking]:
    """Build an unsaved booking for pure state-machine and detector tests."""

    def _new(
        booking_id: int = 1,
        *,
        user_id: int = 1,
        resource_id: int = 1,
        start: datetime = JAN_1_9AM,
        end: datetime | None = None,
        status: BookingStatus = BookingStatus.PENDING,
        steps: tuple[tuple[str, RoleEnum], ...] = (),
        current_node_index: int = 0,
        created_at: datetime | None = None,
    ) -> Booking:
        workflow = WorkflowDefinition(
            WorkflowStep(id=index + 1, name=name, approver_role=role) for index, (name, role) in enumerate(steps)
        )
        return Booking(
            id=booking_id,
            user_id=user_id,
            resource_id=resource_id,
            resource_type=ResourceType.ROOM,
            start_time=start,
            end_time=end or start + timedelta(hours=1),
            purpose="team sync",
            participants=1,
            created_at=created_at or JAN_1_9AM - timedelta(days=1, minutes=-booking_id),
            status=status,
            current_node_index=current_node_index,
            approval_history=[],
            workflow_snapshot=workflow.to_snapshot(),
        )

    return _new


@pytest.fixture()
def actor() -> Callable[..., User]:
    """Build an unsaved user holding the given roles."""

    def _actor(*roles: RoleEnum, user_id: int = 99, name: str = "Approver") -> User:
        return User(id=user_id, name=name, username=name.lower(), email=f"{name.lower()}@example.com", roles=[r.value for r in roles])

    return _actor
