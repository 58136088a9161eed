# insteam/create_admin.py
# 관리자 계정 생성 (공개 회원가입으로는 관리자를 만들 수 없음)
#   python -m insteam.create_admin
#   ADMIN_EMAIL=... ADMIN_PASSWORD=... python -m insteam.create_admin
import os

from insteam import crud, database

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@insteam.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin1234")
ADMIN_NAME = os.getenv("ADMIN_NAME", "관리자")


def main() -> None:
    database.init_db()
    db = database.SessionLocal()
    try:
        admin, created = crud.ensure_admin(db, ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_NAME)
    finally:
        db.close()

    if created:
        print(f"✅ 관리자 계정 생성 완료: {admin.email}")
    else:
        print(f"⚠️  {admin.email} 이미 존재합니다.")


if __name__ == "__main__":
    main()
