# backend/create_initial_admin.py

from datetime import timedelta

from qmsdb.database import Base, WriteSessionLocal, write_engine
from qmsdb.apps.accounts import models as account_models
from qmsdb.security import create_access_token


def main() -> None:
    Base.metadata.create_all(bind=write_engine)
    db = WriteSessionLocal()
    try:
        email = "admin@qms.local"

        # Check if it already exists
        user = db.query(account_models.User).filter(account_models.User.email == email).first()
        if user:
            print(f"[INFO] User already exists: id={user.id}, email={user.email}")
        else:
            user = account_models.User(
                email=email,
                full_name="QMS Admin",
                role=account_models.AccountRole.ADMIN,
                is_active=True,
                is_superuser=True,
            )
            db.add(user)
            db.commit()
            db.refresh(user)

            print("[OK] Created admin user:")
            print(f"  id:      {user.id}")
            print(f"  email:   {user.email}")
            print(f"  role:    {user.role.value}")

        token = create_access_token(data={"sub": user.id}, expires_delta=timedelta(hours=12))
        print(f"  access token (12h): {token}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
