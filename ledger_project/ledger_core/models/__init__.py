from .account import Account
from .auditlog import AuditLog
from .banking import (BankAccount, BankReconciliation, BankStatementImport,
                      BankTransaction, ReconciliationItem)
from .bill import BillLineItem, ThreeWayMatch, VendorBill
from .company import Company
from .forecast import CashFlowForecast, CashFlowForecastItem
from .journal import JournalEntry, JournalLine
from .numbering import NumberingSeries
from .payment import (OnlinePayment, PaymentGateway, VendorPayment,
                      VendorPaymentAllocation)
from .period import FiscalPeriod, FiscalYear
from .purchasing import (GoodsReceipt, GoodsReceiptLine, PurchaseOrder,
                         PurchaseOrderLine)
from .template import JournalTemplate, JournalTemplateLine, RecurringJournalEntry
from .vendor import Vendor
