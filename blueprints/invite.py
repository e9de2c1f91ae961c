from flask import Blueprint, request, jsonify, current_app
from utils.auth_utils import api_key_required
from utils.chain_oracle import ADDRESS_RE
from utils.errors import InviteError, ValidationError
import re

invite_bp = Blueprint('invite', __name__, url_prefix='/api')

SECRET_RE = re.compile(r'^(0x)?[0-9a-fA-F]+$')
MAX_SECRET_LENGTH = 132  # 与 invites.secret 列宽一致


def get_manager():
    return current_app.extensions['invite_manager']


def read_secret_and_address(data, secret_message='Secret is required',
                            address_message='Address is required'):
    secret = (data.get('secret') or '').strip()
    address = (data.get('address') or '').strip()

    if not secret:
        raise ValidationError(secret_message)
    if not address:
        raise ValidationError(address_message)
    if len(secret) > MAX_SECRET_LENGTH or not SECRET_RE.match(secret):
        raise ValidationError('Secret must be a valid hex string')
    if not ADDRESS_RE.match(address):
        raise ValidationError('Address must be a valid Ethereum address')

    return secret, address


@invite_bp.errorhandler(InviteError)
def handle_invite_error(e):
    if e.status_code >= 500:
        current_app.logger.error(f"{request.method} {request.path} failed: {e.message}")
    return jsonify({'success': False, 'error': e.message}), e.status_code


# 公开录入：校验 secret 与地址对应，且地址在合约上存在、未领取
@invite_bp.route('/addInvite', methods=['POST'])
def add_invite():
    data = request.get_json(silent=True) or {}
    secret, address = read_secret_and_address(data)

    invite = get_manager().issue_verified(secret, address)
    return jsonify({'success': True, 'invite': invite.to_dict()}), 201


# 管理员录入：需要 x-api-key，不做链上校验
@invite_bp.route('/admin/addInvite', methods=['POST'])
@api_key_required
def admin_add_invite():
    data = request.get_json(silent=True) or {}
    secret, address = read_secret_and_address(data)

    invite = get_manager().issue(secret, address)
    return jsonify({'success': True, 'invite': invite.to_dict()}), 201


@invite_bp.route('/getInvite', methods=['GET'])
def get_invite():
    invite = get_manager().get_next_invite()
    return jsonify({'success': True, 'invite': invite.to_dict()})


@invite_bp.route('/checkInvite', methods=['POST'])
def check_invite():
    data = request.get_json(silent=True) or {}
    secret, address = read_secret_and_address(
        data,
        secret_message='Secret is required to verify the invite',
        address_message='Signer address is required',
    )

    result = get_manager().check_invite(secret, address)
    return jsonify({
        'success': True,
        'isUsed': result.is_used,
        'invite': result.invite.to_dict(),
    })


# 查询全部邀请（调试 / 管理用途）
@invite_bp.route('/invites', methods=['GET'])
@api_key_required
def list_invites():
    invites = get_manager().list_invites()
    return jsonify({'success': True, 'data': [invite.to_dict() for invite in invites]})
