import sys

from sqlalchemy import select

from oficina.database import SessionLocal, engine, Base
from oficina.models.user import User
from oficina.services.invitations import normalize_email


def main():
    Base.metadata.create_all(bind=engine)

    email = normalize_email(input("Email: "))
    nombre = input("Nombre: ").strip()
    apellido = input("Apellido: ").strip()
    password = input("Password: ").strip()

    if not all([email, nombre, password]):
        print("Email, nombre and password are required.")
        sys.exit(1)

    db = SessionLocal()
    try:
        existing = db.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

        if existing:
            print(f"User with email {email} already exists.")
            sys.exit(1)

        user = User(
            email=email,
            nombre=nombre,
            apellido=apellido or None,
            role="admin",
            password_hash="",
        )
        user.set_password(password)
        db.add(user)
        db.commit()
        print(f"Admin user '{nombre}' created successfully.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
