from .auth import auth_bp
from .base_route import base_bp
from .users import users_bp
from .students import students_bp
from .school_years import school_years_bp
from .structure import structure_bp
from .supervisor import supervisor_bp
from .attendance import attendance_bp
from .payments import payments_bp
from .scholarships import scholarships_bp
from .teachers import teachers_bp


def register_routes(app):
    app.register_blueprint(base_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(users_bp, url_prefix='/users')
    app.register_blueprint(students_bp, url_prefix='/students')
    app.register_blueprint(school_years_bp, url_prefix='/school-years')
    app.register_blueprint(structure_bp, url_prefix='/structure')
    app.register_blueprint(supervisor_bp, url_prefix='/supervisor')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')
    app.register_blueprint(payments_bp, url_prefix='/payments')
    app.register_blueprint(scholarships_bp, url_prefix='/scholarships')
    app.register_blueprint(teachers_bp, url_prefix='/teachers')
