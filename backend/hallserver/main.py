from flask import Blueprint, jsonify, current_app

main = Blueprint('main', __name__)

@main.route('/')
def index():
    hall = current_app.extensions['hall']
    return jsonify({'message': f'Welcome to the {hall.name} server!'})
