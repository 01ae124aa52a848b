# create_owner.py
# Creates (or finds) an owner and prints a bearer token for the API.
import sys
from datetime import timedelta

from sqlalchemy.orm import Session

from app.api.dependencies import create_access_token
from app.config.database import SessionLocal
from app.models.user import User

# -----------------------
# Config
# -----------------------
TOKEN_LIFETIME = timedelta(days=30)


def create_owner(db: Session, email: str, full_name: str = None) -> User:
    owner = db.query(User).filter(User.email == email).first()
    if owner:
        print(f"Owner already exists: {email}")
        return owner

    owner = User(email=email, full_name=full_name, is_active=True)
    db.add(owner)
    db.commit()
    db.refresh(owner)
    print(f"✅ Owner created: {email}")
    return owner


# -----------------------
# Main
# -----------------------
if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m app.scripts.create_owner <email> [full name]")
        sys.exit(1)

    db: Session = SessionLocal()
    try:
        owner = create_owner(db, sys.argv[1], " ".join(sys.argv[2:]) or None)
        token = create_access_token({"sub": str(owner.id)}, expires_delta=TOKEN_LIFETIME)
        print(f"Owner ID: {owner.id}")
        print(f"Bearer token: {token}")
    finally:
        db.close()
