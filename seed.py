from datetime import datetime, timedelta, timezone

from carepublish.auth import get_password_hash
from carepublish.database import SessionLocal, engine, Base
from carepublish.models import (
    Course,
    Facility,
    Notification,
    Policy,
    Procedure,
    Task,
    TaskAuditLog,
    TaskStatusHistory,
    User,
    UserFacility,
)
from carepublish.services.tasks import TaskService

# Create tables
Base.metadata.create_all(bind=engine)

db = SessionLocal()

# Clear existing data
for model in (TaskAuditLog, TaskStatusHistory, Task, Notification, Course, Policy, Procedure, UserFacility, User, Facility):
    db.query(model).delete()
db.commit()

facility = Facility(id="facility-001", name="Riverside General Hospital")
db.add(facility)
db.commit()

password = get_password_hash("password123")
users = {
    role: User(
        email=f"{role}@riverside.example",
        hashed_password=password,
        first_name=first,
        last_name=last,
        role=role,
        facility_id=facility.id,
    )
    for role, first, last in [
        ("administrator", "Alex", "Morgan"),
        ("manager", "Sam", "Patel"),
        ("technician", "Jordan", "Lee"),
        ("trainer", "Casey", "Nguyen"),
        ("viewer", "Riley", "Brooks"),
    ]
}
db.add_all(users.values())
db.commit()

for role, user in users.items():
    db.add(UserFacility(user_id=user.id, facility_id=facility.id, role=role))
db.commit()

now = datetime.now(timezone.utc)
technician = users["technician"]
trainer = users["trainer"]

# Pending content, submitted over the last few hours
content = [
    Course(
        title="Sterile Processing Fundamentals",
        description="Decontamination, inspection and packaging basics",
        author_id=trainer.id,
        facility_id=facility.id,
        approval_status="pending_approval",
        submitted_for_approval_at=now - timedelta(hours=5),
    ),
    Policy(
        title="Instrument Tracking Policy",
        description="Barcode scanning requirements for every tray",
        author_id=technician.id,
        approval_status="pending_approval",
        submitted_for_approval_at=now - timedelta(hours=3),
    ),
    Procedure(
        title="Biological Indicator Failure Response",
        description="Steps to follow when a BI test fails",
        author_id=technician.id,
        approval_status="pending_approval",
        submitted_for_approval_at=now - timedelta(hours=1),
    ),
    Course(
        title="Autoclave Loading Best Practices",
        author_id=trainer.id,
        facility_id=facility.id,
        approval_status="draft",
    ),
]
db.add_all(content)
db.commit()

tasks = TaskService(db)
for item, content_type in zip(content[:3], ("course", "policy", "procedure")):
    tasks.create_content_approval_tasks(item.id, content_type, facility.id)

db.close()

print("Database seeded successfully!")
print(f"- {len(users)} users (password: password123)")
print(f"- {len(content)} content items, 3 pending approval")
