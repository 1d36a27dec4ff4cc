import os

from cyberguard import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # SocketIO server so room watchers get websocket pushes in dev
    port = int(os.environ.get('PORT', '5000'))
    socketio.run(app, host=os.environ.get('HOST', '127.0.0.1'), port=port, debug=True)
