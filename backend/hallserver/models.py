from hallserver import db
import time

# balance_update_record.type
BALANCE_DEPOSIT = 1
BALANCE_EARN = 2


class UserInfo(db.Model):
    __tablename__ = 'user_info'
    id = db.Column(db.Integer, primary_key=True)
    account_token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    account_balance = db.Column(db.BigInteger, default=0, nullable=False)  # cents

    def to_dict(self):
        return {
            'account_token': self.account_token,
            'name': self.name,
            'account_balance': self.account_balance,
        }


class BalanceUpdateRecord(db.Model):
    """Ledger of account balance changes, one row per change."""
    __tablename__ = 'balance_update_record'
    id = db.Column(db.Integer, primary_key=True)
    user = db.Column(db.String(64), nullable=False, index=True)  # account token
    type = db.Column(db.Integer, nullable=False, index=True)
    amount = db.Column(db.BigInteger, nullable=False)  # cents
    created_at = db.Column(db.Float, default=time.time, nullable=False)


class AnnouncementRecord(db.Model):
    __tablename__ = 'announcement_record'
    id = db.Column(db.Integer, primary_key=True)
    announcement = db.Column(db.Text, nullable=False)
    sender = db.Column('from', db.String(64), nullable=False, default='service')
    created_at = db.Column(db.Float, default=time.time, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'announcement': self.announcement,
            'from': self.sender,
            'time': self.created_at,
        }
