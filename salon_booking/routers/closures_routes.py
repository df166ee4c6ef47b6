# salon_booking/routers/closures_routes.py

from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from salon_booking.auth import get_current_user
from salon_booking.db import get_session
from salon_booking.deps import require_owner
from salon_booking.exceptions import InvalidInput
from salon_booking.models import Break, Establishment, Professional, TimeBlock
from salon_booking.schemas import BlockCreate, BlockPublic, BreakCreate, BreakPublic, BreakUpdate
from salon_booking.services.lookups import get_or_404

router = APIRouter(
    tags=["closures"],
)


def _check_professional(session: Session, establishment_id: int, professional_id) -> None:
    if professional_id is None:
        return
    professional = get_or_404(session, Professional, professional_id)
    if professional.establishment_id != establishment_id:
        raise InvalidInput("Professional does not work at this establishment")


def _block_public(blk: TimeBlock) -> dict:
    return {
        "id": blk.id,
        "establishment_id": blk.establishment_id,
        "professional_id": blk.professional_id,
        "name": blk.name,
        "description": blk.description,
        "date": blk.block_date,
        "start_time": blk.start_time,
        "end_time": blk.end_time,
        "kind": blk.block_type,
    }


# Breaks: weekly recurring closures

@router.post("/establishments/{establishment_id}/breaks", response_model=BreakPublic, status_code=201)
def create_break(
    establishment_id: int,
    payload: BreakCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_owner(session, current_user, establishment_id)
    _check_professional(session, establishment_id, payload.professional_id)
    db_break = Break(establishment_id=establishment_id, **payload.model_dump())
    session.add(db_break)
    session.commit()
    session.refresh(db_break)
    return db_break


@router.get("/establishments/{establishment_id}/breaks", response_model=List[BreakPublic])
def list_breaks(establishment_id: int, session: Session = Depends(get_session)):
    get_or_404(session, Establishment, establishment_id)
    return session.exec(
        select(Break).where(Break.establishment_id == establishment_id).order_by(Break.start_time)
    ).all()


@router.patch("/breaks/{break_id}", response_model=BreakPublic)
def update_break(
    break_id: int,
    payload: BreakUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    db_break = get_or_404(session, Break, break_id)
    require_owner(session, current_user, db_break.establishment_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(db_break, field, value)
    if db_break.start_time >= db_break.end_time:
        raise InvalidInput("start_time must be before end_time")
    session.add(db_break)
    session.commit()
    session.refresh(db_break)
    return db_break


@router.delete("/breaks/{break_id}", status_code=204)
def delete_break(
    break_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    db_break = get_or_404(session, Break, break_id)
    require_owner(session, current_user, db_break.establishment_id)
    session.delete(db_break)
    session.commit()


# Time blocks: one-off closures on a single date

@router.post("/establishments/{establishment_id}/blocks", response_model=BlockPublic, status_code=201)
def create_block(
    establishment_id: int,
    payload: BlockCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_owner(session, current_user, establishment_id)
    _check_professional(session, establishment_id, payload.professional_id)
    block = TimeBlock(
        establishment_id=establishment_id,
        professional_id=payload.professional_id,
        name=payload.name,
        description=payload.description,
        block_date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        block_type=payload.kind.value,
    )
    session.add(block)
    session.commit()
    session.refresh(block)
    return _block_public(block)


@router.get("/establishments/{establishment_id}/blocks", response_model=List[BlockPublic])
def list_blocks(establishment_id: int, session: Session = Depends(get_session)):
    get_or_404(session, Establishment, establishment_id)
    blocks = session.exec(
        select(TimeBlock)
        .where(TimeBlock.establishment_id == establishment_id)
        .order_by(TimeBlock.block_date, TimeBlock.start_time)
    ).all()
    return [_block_public(b) for b in blocks]


@router.delete("/blocks/{block_id}", status_code=204)
def delete_block(
    block_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    block = get_or_404(session, TimeBlock, block_id)
    require_owner(session, current_user, block.establishment_id)
    session.delete(block)
    session.commit()
