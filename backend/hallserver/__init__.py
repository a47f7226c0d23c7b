from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from hallserver.main import main
    flask_app.register_blueprint(main)

    from hallserver.api.hall import hall_api
    flask_app.register_blueprint(hall_api, url_prefix='/api/hall')

    # One hall module per app; handlers reach it through current_app
    from hallserver.services.hall.module import HallModule
    hall = HallModule.from_app(flask_app, socketio)
    flask_app.extensions['hall'] = hall

    from hallserver.socketio_events import register_socketio_handlers
    register_socketio_handlers(socketio, testing=flask_app.config.get('TESTING', False))

    # Announcement ticker and fanout stay off in tests unless asked for
    if not flask_app.config.get('TESTING') or flask_app.config.get('ENABLE_ANNOUNCER_IN_TESTS'):
        hall.start()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from hallserver.models import UserInfo, BalanceUpdateRecord, BALANCE_DEPOSIT, BALANCE_EARN
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed players and a few ledger rows
            users = [('token-alice', 'Alice', 120000), ('token-bob', 'Bob', 80000), ('token-cara', 'Cara', 80000)]
            for token, name, balance in users:
                db.session.add(UserInfo(account_token=token, name=name, account_balance=balance))
                db.session.add(BalanceUpdateRecord(user=token, type=BALANCE_DEPOSIT, amount=balance))
            db.session.add(BalanceUpdateRecord(user='token-alice', type=BALANCE_EARN, amount=500))
            db.session.add(BalanceUpdateRecord(user='token-bob', type=BALANCE_EARN, amount=700))

            db.session.commit()
            click.echo('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
