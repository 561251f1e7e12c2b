from predictor import create_app, db, socketio
from predictor.models import AdminAction, Match, Prediction, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Match": Match,
        "Prediction": Prediction,
        "AdminAction": AdminAction,
    }


if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5000, debug=app.debug, use_reloader=False)
