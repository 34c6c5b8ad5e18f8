# Overview: Flask extension instances for database, migrations and checkout carts.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.cart_service import CartStore

db = SQLAlchemy()
migrate = Migrate()
carts = CartStore()
