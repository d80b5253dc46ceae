from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:8081",
    "http://127.0.0.1:8081",
    "http://localhost:19006",
    "http://127.0.0.1:19006",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Puzzle generator client; tests swap this for a stub
    from sudoku_classic.services.games.puzzle_source import PuzzleSource
    flask_app.extensions['puzzle_source'] = PuzzleSource.from_config(flask_app.config)

    # Import and register blueprints here
    from sudoku_classic.routes import main
    flask_app.register_blueprint(main, url_prefix='/api/auth')

    from sudoku_classic.api.sessions import sessions_bp
    flask_app.register_blueprint(sessions_bp, url_prefix='/api/sessions')

    from sudoku_classic.api.sessions import start_session_reaper
    start_session_reaper(flask_app)

    from sudoku_classic.api.history import history_bp
    flask_app.register_blueprint(history_bp, url_prefix='/api/history')

    # Register Socket.IO event handlers
    from sudoku_classic.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    from sudoku_classic.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            db.session.add(User(uid='demo-user', email='demo@example.com'))
            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('history-clear')
    @click.option('--device', default='default', help='Device scope whose ledger is cleared.')
    def history_clear_command(device):
        """Empties one device's local history ledger."""
        from sudoku_classic.services.identity import history_store
        with flask_app.app_context():
            history_store(device).clear()
            print(f'History cleared for device {device}.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(history_clear_command)

    return flask_app
