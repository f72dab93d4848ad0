from flask import Flask
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from .config import Config

# Создаем объект SQLAlchemy
db = SQLAlchemy()
# Инициализация миграций
migrate = Migrate()


def create_app(config_object=Config):
    """
    Создает и конфигурирует экземпляр приложения Flask
    Детали:
    Конфигурация загружается из переданного объекта (по умолчанию Config)
    db.init_app(app) - вызывается для настройки приложения на работу с бд
    migrate.init_app(app, db) - для настройки миграций бд
    Модели импортируются внутри, чтобы метаданные таблиц были зарегистрированы
    до create_all / миграций и не было циклических импортов
    :return: возвращает сконфигурированный объект Flask приложения
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Инициализация баз данных
    db.init_app(app)
    migrate.init_app(app, db)

    from . import models  # noqa: F401

    return app
