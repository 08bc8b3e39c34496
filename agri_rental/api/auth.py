from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from agri_rental.schemas.auth import RegisterIn, TokenOut, UserOut
from agri_rental.models.user import User
from agri_rental.models.intermediary import Intermediary
from agri_rental.models.operator import Operator
from agri_rental.db.session import get_db
from agri_rental.core.security import create_access_token, hash_password, verify_password, get_current_user
from agri_rental.core.enums import UserRole
from agri_rental.core.audit_log import log_login
from agri_rental.core.exceptions import ValidationFailedError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenOut)
async def register(payload: RegisterIn, db: AsyncSession = Depends(get_db)):
    if payload.role == UserRole.ADMIN:
        raise ValidationFailedError("Admin accounts are created with create_admin.py")
    if payload.role == UserRole.INTERMEDIARY and not payload.business_name:
        raise ValidationFailedError("business_name is required for intermediaries")

    res = await db.execute(select(User).where(User.phone == payload.phone))
    existing_user = res.scalars().first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Phone number already registered")

    new_user = User(
        phone=payload.phone,
        name=payload.name,
        password_hash=hash_password(payload.password),
        role=payload.role,
    )
    db.add(new_user)
    await db.flush()

    if payload.role == UserRole.INTERMEDIARY:
        db.add(Intermediary(
            user_id=new_user.id,
            business_name=payload.business_name,
            location_code=payload.location_code,
        ))
    elif payload.role == UserRole.OPERATOR:
        db.add(Operator(user_id=new_user.id))

    await db.commit()
    await db.refresh(new_user)

    await log_login(db, new_user.id, payload.phone)

    token = create_access_token(new_user)
    return {"access_token": token}


@router.post("/login", response_model=TokenOut)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(User).where(User.phone == form_data.username))
    user = res.scalars().first()
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid credentials")

    await log_login(db, user.id, form_data.username)

    token = create_access_token(user)
    return {"access_token": token}


@router.get("/me", response_model=UserOut)
async def me(current_user=Depends(get_current_user)):
    return UserOut(
        id=current_user.id,
        phone=current_user.phone,
        name=current_user.name,
        role=current_user.role,
    )
