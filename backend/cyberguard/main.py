from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from cyberguard import db

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the CyberGuard game server!'})

@main.route('/api/health')
def health():
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({'status': 'degraded', 'store': 'unavailable'}), 503
    return jsonify({'status': 'ok'})
