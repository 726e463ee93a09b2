try:
    from backend.sketchparty.server import create_app
except ImportError:  # pragma: no cover
    from sketchparty.server import create_app

app, socketio = create_app()
