#!/usr/bin/env python3
"""
Seed script for the super admin account

Reads ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME from the environment.
Creates the account, or resets its password and reactivates it if it exists.
"""

import os
import sys
import logging
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

load_dotenv()

from sqlmodel import Session, select
from database import engine, create_db_and_tables
from models import User, UserRole, RecordStatus
from auth import get_password_hash

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("seed_admin")

DEFAULT_ADMIN_NAME = "Super Administrator"


def seed_admin() -> User:
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        raise ValueError("ADMIN_EMAIL and ADMIN_PASSWORD environment variables must be set")
    email = email.strip().lower()

    create_db_and_tables()
    with Session(engine) as session:
        admin = session.exec(select(User).where(User.email == email)).first()
        if admin:
            admin.password_hash = get_password_hash(password)
            admin.role = UserRole.SUPER_ADMIN.value
            admin.status = RecordStatus.ACTIVE.value
            logger.info(f"Super admin {email} already exists, password reset")
        else:
            admin = User(
                email=email,
                password_hash=get_password_hash(password),
                name=os.getenv("ADMIN_NAME", DEFAULT_ADMIN_NAME),
                role=UserRole.SUPER_ADMIN.value,
                status=RecordStatus.ACTIVE.value,
            )
            logger.info(f"Super admin {email} created")

        session.add(admin)
        session.commit()
        session.refresh(admin)
        return admin


if __name__ == "__main__":
    seed_admin()
