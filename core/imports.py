from flask import Flask, request, jsonify, Blueprint, current_app, send_file
from flask_jwt_extended import create_access_token, create_refresh_token, get_jwt_identity, jwt_required, JWTManager, get_jwt
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from flask_migrate import Migrate
from flask_bcrypt import Bcrypt
from flasgger import Swagger
from flask_mail import Mail, Message
from flask_cors import CORS
from sqlalchemy import func, or_, and_
from datetime import datetime, timedelta
from decimal import Decimal
from io import BytesIO
import uuid
import json
import requests
import cloudinary
import cloudinary.uploader
import hashlib
import hmac
import re
