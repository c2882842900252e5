"""Test data builders shared across test modules."""
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.auth.security import create_access_token
from creator_ledger.models.balance import CreatorBalance
from creator_ledger.models.payout import PayoutAccount
from creator_ledger.models.product import Course, Product
from creator_ledger.models.user import User


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.uuid, "email": user.email, "role": user.user_role})
    return {"Authorization": f"Bearer {token}"}


async def create_user(db: AsyncSession, role: str = "freelancer", status: str = "active") -> User:
    user = User(
        name=f"{role.title()} User",
        email=f"{role}-{uuid4().hex[:8]}@example.com",
        user_role=role,
        status=status,
    )
    db.add(user)
    await db.commit()
    return user


async def create_product(
    db: AsyncSession,
    seller: User | None,
    price_cents: int = 4000,
    name: str = "Logo Pack",
) -> Product:
    product = Product(
        name=name,
        price_cents=price_cents,
        seller_id=seller.uuid if seller else None,
        seller_role=seller.user_role if seller else None,
    )
    db.add(product)
    await db.commit()
    return product


async def create_course(db: AsyncSession, instructor: User | None, price_cents: int = 10000) -> Course:
    course = Course(
        title="Intro to Illustration",
        price_cents=price_cents,
        instructor_id=instructor.uuid if instructor else None,
    )
    db.add(course)
    await db.commit()
    return course


async def create_account(
    db: AsyncSession,
    user: User,
    account_type: str = "paypal",
    is_default: bool = True,
) -> PayoutAccount:
    account = PayoutAccount(
        user_id=user.uuid,
        type=account_type,
        account_name=f"{user.name} {account_type}",
        is_verified=True,
        is_default=is_default,
    )
    db.add(account)
    await db.commit()
    return account


async def create_balance(db: AsyncSession, creator: User, available_cents: int) -> CreatorBalance:
    """Balance row with funds already available, as if settled earlier."""
    balance = CreatorBalance(
        creator_id=creator.uuid,
        available_cents=available_cents,
        pending_cents=0,
        lifetime_earnings_cents=available_cents,
        total_withdrawn_cents=0,
    )
    db.add(balance)
    await db.commit()
    return balance
