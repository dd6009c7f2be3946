"""Letter write and query routes. All writes go through LetterRepository."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel

from lettersync.db.letters import LetterRepository
from lettersync.models.letter import Letter

router = APIRouter()


class LetterCreate(BaseModel):
    number: str
    org: str
    letter_date: Optional[date] = None
    deadline_date: Optional[date] = None
    status: str = "NOT_REVIEWED"
    type: Optional[str] = None
    content: Optional[str] = None
    jira_link: Optional[str] = None
    zordoc: Optional[str] = None
    answer: Optional[str] = None
    send_status: Optional[str] = None
    ijro_date: Optional[date] = None
    comment: Optional[str] = None
    contacts: Optional[str] = None
    close_date: Optional[date] = None
    owner_id: Optional[str] = None


class LetterUpdate(BaseModel):
    """Only fields present in the request body are changed."""

    number: Optional[str] = None
    org: Optional[str] = None
    letter_date: Optional[date] = None
    deadline_date: Optional[date] = None
    status: Optional[str] = None
    type: Optional[str] = None
    content: Optional[str] = None
    jira_link: Optional[str] = None
    zordoc: Optional[str] = None
    answer: Optional[str] = None
    send_status: Optional[str] = None
    ijro_date: Optional[date] = None
    comment: Optional[str] = None
    contacts: Optional[str] = None
    close_date: Optional[date] = None
    owner_id: Optional[str] = None


def get_repository(request: Request) -> LetterRepository:
    return LetterRepository(request.app.state.engine)


@router.post("/", response_model=Letter, status_code=201)
def create_letter(
    body: LetterCreate,
    repo: LetterRepository = Depends(get_repository),
    x_actor_id: Optional[str] = Header(default=None),
):
    return repo.create(body.model_dump(), actor_id=x_actor_id)


@router.get("/", response_model=List[Letter])
def list_letters(
    limit: int = 50,
    offset: int = 0,
    include_deleted: bool = False,
    repo: LetterRepository = Depends(get_repository),
):
    """List letters, newest first."""
    return repo.list(limit=limit, offset=offset, include_deleted=include_deleted)


@router.get("/{letter_id}", response_model=Letter)
def get_letter(letter_id: str, repo: LetterRepository = Depends(get_repository)):
    letter = repo.get(letter_id)
    if not letter:
        raise HTTPException(status_code=404, detail="Letter not found")
    return letter


@router.patch("/{letter_id}", response_model=Letter)
def update_letter(
    letter_id: str,
    body: LetterUpdate,
    repo: LetterRepository = Depends(get_repository),
    x_actor_id: Optional[str] = Header(default=None),
):
    try:
        letter = repo.update(letter_id, body.model_dump(exclude_unset=True), actor_id=x_actor_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not letter:
        raise HTTPException(status_code=404, detail="Letter not found")
    return letter


@router.post("/{letter_id}/restore", response_model=Letter)
def restore_letter(
    letter_id: str,
    repo: LetterRepository = Depends(get_repository),
    x_actor_id: Optional[str] = Header(default=None),
):
    letter = repo.restore(letter_id, actor_id=x_actor_id)
    if not letter:
        raise HTTPException(status_code=404, detail="Letter not found")
    return letter


@router.delete("/{letter_id}")
def delete_letter(
    letter_id: str,
    hard: bool = False,
    repo: LetterRepository = Depends(get_repository),
    x_actor_id: Optional[str] = Header(default=None),
):
    """Soft delete by default; ?hard=true removes the row."""
    if hard:
        found = repo.delete(letter_id, actor_id=x_actor_id)
    else:
        found = repo.soft_delete(letter_id, actor_id=x_actor_id) is not None
    if not found:
        raise HTTPException(status_code=404, detail="Letter not found")
    return {"deleted": letter_id, "hard": hard}
