# nutricoach_app/extensions.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import click
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_migrate import Migrate
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import text



db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()
scheduler = BackgroundScheduler(daemon=True)

def init_extensions(app):
    # DB/Bcrypt/Migrate
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)

def register_cli(app):
    @app.cli.command("init-db")
    def init_db_cmd():
        """Cria as tabelas iniciais (DEV/MVP). Para produção: use flask db upgrade."""
        with app.app_context():
            # sanity check
            db.session.execute(text("SELECT 1"))
            db.create_all()
            print("Tabelas criadas.")

    @app.cli.command("repair-provisioning")
    @click.argument("payment_id", required=False)
    def repair_provisioning_cmd(payment_id):
        """Reexecuta o provisionamento de pagamentos aprovados sem cliente vinculado."""
        from .models import Payment
        from .services.payment_status import APPROVED
        from .services.provisioning import repair_provisioning
        from .errors import PaymentError

        with app.app_context():
            if payment_id:
                ids = [payment_id]
            else:
                ids = [p.id for p in Payment.query.filter_by(status=APPROVED, client_id=None).all()]
            if not ids:
                print("Nenhum pagamento pendente de provisionamento.")
                return
            for pid in ids:
                try:
                    user = repair_provisioning(pid)
                    print(f"{pid}: vinculado ao cliente {user.id}")
                except PaymentError as e:
                    print(f"{pid}: falhou ({e})")
