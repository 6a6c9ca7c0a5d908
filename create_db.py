from database import Base, init_engine
from models import Invoice

def create_tables():
    engine = init_engine()
    Base.metadata.create_all(bind=engine)
    print("Database created successfully")

if __name__ == "__main__":
    create_tables()
