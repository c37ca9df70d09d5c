"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py init-db
    flask --app run.py seed-companies
    flask --app run.py --debug run

"""

from tradedocs import create_app

# WSGI application object. `flask run` and production WSGI servers look for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only).
    app.run(debug=True)
