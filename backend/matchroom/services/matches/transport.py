class SocketIOTransport:
    """Thin wrapper around a Flask-SocketIO server for one namespace."""

    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def send(self, sid, event, payload):
        self.socketio.emit(event, payload, to=sid, namespace=self.namespace)

    def broadcast(self, room, event, payload, skip_sid=None):
        self.socketio.emit(event, payload, to=room, skip_sid=skip_sid, namespace=self.namespace)

    def enter_room(self, sid, room):
        self.socketio.server.enter_room(sid, room, namespace=self.namespace)

    def spawn(self, target, *args):
        return self.socketio.start_background_task(target, *args)

    def sleep(self, seconds):
        self.socketio.sleep(seconds)
