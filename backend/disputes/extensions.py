from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Flask extensions singletons

db = SQLAlchemy()
migrate = Migrate()
