"""
Workspace, card and category API endpoints
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from offshore.api.deps import get_db, get_app_settings, raise_for
from offshore.application.cards import (
    CreateWorkspaceUseCase, CreateCardUseCase, CreateCategoryUseCase, DeleteCardUseCase,
    CardValidationError, list_cards, list_categories,
)
from offshore.config import Settings


router = APIRouter(prefix="/api/v1", tags=["cards"])


class CreateWorkspaceRequest(BaseModel):
    name: str


class CreateNamedRequest(BaseModel):
    workspace_id: int
    name: str


class NamedResponse(BaseModel):
    id: int
    workspace_id: int
    name: str


@router.post("/workspaces")
def create_workspace(req: CreateWorkspaceRequest, db: Session = Depends(get_db)):
    try:
        workspace_id = CreateWorkspaceUseCase(db).execute(req.name)
    except CardValidationError as e:
        raise_for(e)
    return {"id": workspace_id, "name": req.name.strip()}


@router.post("/cards", response_model=NamedResponse)
def create_card(req: CreateNamedRequest, db: Session = Depends(get_db)):
    try:
        card_id = CreateCardUseCase(db).execute(req.workspace_id, req.name)
    except CardValidationError as e:
        raise_for(e)
    return NamedResponse(id=card_id, workspace_id=req.workspace_id, name=req.name.strip())


@router.get("/cards", response_model=list[NamedResponse])
def list_workspace_cards(workspace_id: int, db: Session = Depends(get_db)):
    return [
        NamedResponse(id=c.id, workspace_id=c.workspace_id, name=c.name)
        for c in list_cards(db, workspace_id)
    ]


class CardDeletionResponse(BaseModel):
    card_id: int
    expenses: int
    recorded: int
    completed: bool
    needs_confirmation: bool


@router.delete("/cards/{card_id}", response_model=CardDeletionResponse)
def delete_card(
    card_id: int,
    confirmed: bool = False,
    confirm_before_deleting: bool | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Delete a card and its planned expenses, asking first when it still has some"""
    if confirm_before_deleting is None:
        confirm_before_deleting = settings.CONFIRM_BEFORE_DELETING
    try:
        result = DeleteCardUseCase(db).execute(
            card_id, confirm_before_deleting=confirm_before_deleting, confirmed=confirmed,
        )
    except CardValidationError as e:
        raise_for(e)
    return CardDeletionResponse(
        card_id=result.card_id,
        expenses=result.expenses,
        recorded=result.recorded,
        completed=result.completed,
        needs_confirmation=result.needs_confirmation,
    )


@router.post("/categories", response_model=NamedResponse)
def create_category(req: CreateNamedRequest, db: Session = Depends(get_db)):
    try:
        category_id = CreateCategoryUseCase(db).execute(req.workspace_id, req.name)
    except CardValidationError as e:
        raise_for(e)
    return NamedResponse(id=category_id, workspace_id=req.workspace_id, name=req.name.strip())


@router.get("/categories", response_model=list[NamedResponse])
def list_workspace_categories(workspace_id: int, db: Session = Depends(get_db)):
    return [
        NamedResponse(id=c.id, workspace_id=c.workspace_id, name=c.name)
        for c in list_categories(db, workspace_id)
    ]
