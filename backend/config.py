import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///matches.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Allowed browser origins for HTTP and Socket.IO (comma separated)
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    # Clock (seconds)
    GAME_TIME_SECONDS = int(os.environ.get('GAME_TIME_SECONDS', str(8 * 60)))
    INCREMENT_SECONDS = int(os.environ.get('INCREMENT_SECONDS', '3'))
    TICK_INTERVAL_SEC = int(os.environ.get('TICK_INTERVAL_SEC', '1'))
    # Chat messages longer than this are truncated
    CHAT_MAX_LENGTH = int(os.environ.get('CHAT_MAX_LENGTH', '500'))
