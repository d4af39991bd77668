from lampatrack.db.base import Base
from lampatrack.db.session import engine
from lampatrack.db.models.push_subscription import PushSubscription  # noqa: F401

if __name__ == "__main__":
    print("Creating tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created.")
