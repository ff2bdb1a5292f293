"""
Entry point for the Supplier Ledger service.

Development server (from project root):

    flask --app run.py --debug run

Configuration is picked from FLASK_ENV (development / testing / production),
the database from DATABASE_URL.

Ledger maintenance:

    flask --app run.py recalculate-balance <supplier_id>
    flask --app run.py recalculate-all
    flask --app run.py diagnose-ledger <supplier_id>
"""

from supplier_ledger import create_app

# WSGI application object; `flask run` and WSGI servers look for `app`.
app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
