"""
Database Schema Definition

Schema for the seven operational collections the report engine reads:
patients, lab results, drug orders, drugs, sales, payments and walk-in
services. Line items of sales and drug orders are stored as JSON text.

Copyright: © 2025 Clinic Reports contributors
"""

from typing import Dict


def get_schema_sql() -> str:
    """Get the complete database schema SQL"""
    return """
CREATE TABLE IF NOT EXISTS patients (
    id TEXT PRIMARY KEY,
    patient_id TEXT,
    first_name TEXT,
    last_name TEXT,
    age INTEGER,
    gender TEXT,
    phone TEXT,
    is_active INTEGER DEFAULT 1,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_patients_created ON patients(created_at);

CREATE TABLE IF NOT EXISTS lab_results (
    id TEXT PRIMARY KEY,
    test_id TEXT,
    patient_name TEXT,
    test_type TEXT,
    test_name TEXT,
    status TEXT DEFAULT 'PENDING',
    requested_at TIMESTAMP NOT NULL,
    completed_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_lab_results_requested ON lab_results(requested_at);
CREATE INDEX IF NOT EXISTS idx_lab_results_status ON lab_results(status);

CREATE TABLE IF NOT EXISTS drug_orders (
    id TEXT PRIMARY KEY,
    order_id TEXT,
    patient_name TEXT,
    status TEXT DEFAULT 'PENDING',
    total_amount REAL,
    items TEXT,
    ordered_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_drug_orders_ordered ON drug_orders(ordered_at);
CREATE INDEX IF NOT EXISTS idx_drug_orders_status ON drug_orders(status);

CREATE TABLE IF NOT EXISTS drugs (
    id TEXT PRIMARY KEY,
    drug_id TEXT,
    name TEXT,
    category TEXT,
    stock_quantity INTEGER DEFAULT 0,
    selling_price REAL DEFAULT 0,
    manufacturer TEXT,
    expiry_date DATE
);

CREATE TABLE IF NOT EXISTS sales (
    id TEXT PRIMARY KEY,
    sale_id TEXT,
    patient_name TEXT,
    total REAL DEFAULT 0,
    payment_method TEXT,
    payment_status TEXT,
    items TEXT,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sales_created ON sales(created_at);

CREATE TABLE IF NOT EXISTS payments (
    id TEXT PRIMARY KEY,
    payment_id TEXT,
    patient_id TEXT,
    amount REAL DEFAULT 0,
    final_amount REAL,
    payment_method TEXT,
    payment_status TEXT DEFAULT 'PENDING',
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_payments_created ON payments(created_at);
CREATE INDEX IF NOT EXISTS idx_payments_status ON payments(payment_status);

CREATE TABLE IF NOT EXISTS walk_in_services (
    id TEXT PRIMARY KEY,
    service_id TEXT,
    patient_name TEXT,
    service_type TEXT,
    amount REAL DEFAULT 0,
    payment_method TEXT,
    payment_status TEXT DEFAULT 'PENDING',
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_walk_in_services_created ON walk_in_services(created_at);
"""


def get_table_descriptions() -> Dict[str, str]:
    """Get human-readable descriptions for each source table"""
    return {
        'patients': 'Registered patients and their demographics',
        'lab_results': 'Laboratory test requests and results',
        'drug_orders': 'Prescription orders and their dispensing status',
        'drugs': 'Current drug inventory snapshot',
        'sales': 'Pharmacy sales with line items',
        'payments': 'Payments collected across sales and services',
        'walk_in_services': 'Billable services rendered without a prior order',
    }
