#!/usr/bin/env python3
"""
Seed script: creates demo accounts, the default 50/50 weight policy and a few
sample practices across the lifecycle.
Run after migrations: python scripts/seed.py
"""

import asyncio
import os
import sys
from datetime import date, timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ipms.database import get_engine_url_and_connect_args
from ipms.models import Account, Practice
from ipms.schemas.common import Identity, PracticeKind, Role
from ipms.schemas.practice import AssignSupervisorRequest, CreatePracticeRequest
from ipms.services import practices
from ipms.services.policy import get_active_policy_row

CAMPUS_ID = 1
PROGRAM_ID = 10
HOST_ORGANIZATION_ID = 500

ACCOUNTS = [
    (1, Role.SUPER_ADMIN, "Admin Demo", "admin@ipms.local", None, None, True),
    (2, Role.COORDINATOR, "Coordinadora Sede Centro", "coordinacion@ipms.local", CAMPUS_ID, None, True),
    (3, Role.PROGRAM_DIRECTOR, "Director Informática", "director@ipms.local", CAMPUS_ID, PROGRAM_ID, True),
    (20, Role.SUPERVISOR, "Docente Supervisor", "docente@ipms.local", CAMPUS_ID, PROGRAM_ID, True),
    (21, Role.SUPERVISOR, "Docente Inactivo", "inactivo@ipms.local", CAMPUS_ID, PROGRAM_ID, False),
    (30, Role.EMPLOYER, "Empresa Demo", "rrhh@empresa.local", None, None, True),
    (100, Role.STUDENT, "Estudiante Uno", "estudiante1@ipms.local", CAMPUS_ID, PROGRAM_ID, True),
    (101, Role.STUDENT, "Estudiante Dos", "estudiante2@ipms.local", CAMPUS_ID, PROGRAM_ID, True),
    (102, Role.STUDENT, "Estudiante Tres", "estudiante3@ipms.local", CAMPUS_ID, PROGRAM_ID, True),
]


async def seed():
    url, connect_args = get_engine_url_and_connect_args()
    engine = create_async_engine(url, connect_args=connect_args)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    coordinator = Identity(user_id=2, role=Role.COORDINATOR, scope_id=CAMPUS_ID, origin="seed")

    async with async_session() as session:
        for user_id, role, name, email, campus_id, program_id, active in ACCOUNTS:
            if await session.get(Account, user_id) is None:
                session.add(
                    Account(
                        user_id=user_id,
                        role=role.value,
                        display_name=name,
                        email=email,
                        campus_id=campus_id,
                        program_id=program_id,
                        active=active,
                    )
                )
        await session.commit()

        policy = await get_active_policy_row(session)
        await session.commit()
        print(f"Weight policy v{policy.version}: employer {policy.employer_weight_pct}% / report {policy.report_weight_pct}%")

        existing = await session.scalar(select(Practice.id).limit(1))
        if existing is not None:
            print("Practices already exist, skipping sample practices.")
        else:
            today = date.today()
            for student_id, start, end in (
                (100, today - timedelta(days=60), today + timedelta(days=3)),
                (101, today - timedelta(days=90), today - timedelta(days=20)),
                (102, today + timedelta(days=10), today + timedelta(days=100)),
            ):
                practice = await practices.create_practice(
                    session,
                    coordinator,
                    CreatePracticeRequest(
                        student_id=student_id,
                        program_id=PROGRAM_ID,
                        campus_id=CAMPUS_ID,
                        kind=PracticeKind.PROFESSIONAL,
                        start_date=start,
                        end_date=end,
                        host_organization_id=HOST_ORGANIZATION_ID,
                    ),
                )
                if student_id != 102:
                    await practices.assign_supervisor(
                        session, coordinator, practice.id, AssignSupervisorRequest(supervisor_id=20)
                    )
                print(f"Practice {practice.id} for student {student_id}: {practice.state}")
            await session.commit()

    await engine.dispose()
    print("Seed complete!")
    print("Example: curl http://localhost:8000/v1/alerts \\")
    print('  -H "X-User-Id: 2" -H "X-User-Role: COORDINATOR" -H "X-Scope-Id: 1"')


if __name__ == "__main__":
    asyncio.run(seed())
