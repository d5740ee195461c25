import os
import sqlite3
import sys
import tempfile
import unittest
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.cart import Cart  # noqa: E402
from db.errors import EmptyCartError, InvalidInputError, StorageError  # noqa: E402
from db.models import Product  # noqa: E402

CATALOG = [
    Product(id="B1", name="Pen", price=Decimal("10")),
    Product(id="B2", name="Book", price=Decimal("50")),
    Product(id="B3", name="Eraser", price=Decimal("2.50")),
]


def row_named(report, name):
    return next(row for row in report.rows if row.name == name)


def make_cart(*lines) -> Cart:
    cart = Cart()
    for ref, price, qty in lines:
        cart.add_line(ref, price, qty, CATALOG)
    return cart


class CrudTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

    def tearDown(self):
        self.temp_dir.cleanup()

    # ---------- Key-value storage ----------

    async def test_kv_get_set_replace_and_delete(self):
        self.assertIsNone(await crud.kv_get("greeting"))

        await crud.kv_set("greeting", b"hello")
        self.assertEqual(await crud.kv_get("greeting"), b"hello")

        await crud.kv_set("greeting", b"bye")
        self.assertEqual(await crud.kv_get("greeting"), b"bye")

        await crud.kv_delete("greeting")
        self.assertIsNone(await crud.kv_get("greeting"))

    async def test_kv_set_failure_keeps_previous_value(self):
        await crud.kv_set("ledger", b"old")

        class BrokenConn:
            async def execute(self, *_args, **_kwargs):
                raise sqlite3.OperationalError("disk I/O error")

            async def commit(self):
                return None

        @asynccontextmanager
        async def broken_connect():
            yield BrokenConn()

        with patch.object(crud, "connect", broken_connect):
            with self.assertRaises(StorageError):
                await crud.kv_set("ledger", b"new")

        self.assertEqual(await crud.kv_get("ledger"), b"old")

    async def test_db_file_created_in_missing_directory(self):
        nested = os.path.join(self.temp_dir.name, "nested", "dir", "db.sqlite")
        db_database.DB_PATH = nested
        db_database._initialized = False
        await crud.kv_set("k", b"v")
        self.assertTrue(os.path.exists(nested))

    # ---------- Invoice numbering ----------

    async def test_next_bill_id_is_strictly_increasing_across_dates(self):
        day1 = datetime(2025, 3, 31, 23, 59)
        day2 = day1 + timedelta(minutes=2)
        ids = [
            await crud.next_bill_id(day1),
            await crud.next_bill_id(day1),
            await crud.next_bill_id(day2),
            await crud.next_bill_id(datetime(2024, 1, 1)),
        ]
        self.assertEqual(
            ids,
            ["20250331-1226", "20250331-1227", "20250401-1228", "20240101-1229"],
        )
        suffixes = [int(i.split("-")[1]) for i in ids]
        self.assertEqual(suffixes, sorted(set(suffixes)))

    async def test_next_bill_id_counter_stored_as_plain_integer(self):
        await crud.next_bill_id(datetime(2025, 1, 1))
        self.assertEqual(await crud.kv_get(crud.BILL_NO_KEY), b"1226")

    async def test_next_bill_id_reseeds_unparseable_counter(self):
        await crud.kv_set(crud.BILL_NO_KEY, b"garbage")
        self.assertEqual(
            await crud.next_bill_id(datetime(2025, 1, 1)), "20250101-1226"
        )

        await crud.kv_set(crud.BILL_NO_KEY, b"5000")
        self.assertEqual(
            await crud.next_bill_id(datetime(2025, 1, 1)), "20250101-5001"
        )

    async def test_next_bill_id_reads_leading_digits_of_counter(self):
        for stored, expected in [
            (b"5000.0", "20250101-5001"),
            (b" 7000abc", "20250101-7001"),
            (b"-12", "20250101-1226"),
            (b"\xff\xfe", "20250101-1226"),
        ]:
            with self.subTest(stored=stored):
                await crud.kv_set(crud.BILL_NO_KEY, stored)
                self.assertEqual(
                    await crud.next_bill_id(datetime(2025, 1, 1)), expected
                )

    # ---------- Ledger ----------

    async def test_finalize_computes_grand_total(self):
        cart = make_cart(("Pen", 10, 3), ("Book", 50, 1))
        when = datetime(2025, 6, 1, 10, 30)

        invoice = await crud.finalize_invoice(cart, when=when)

        self.assertEqual(invoice.grand_total, Decimal("80.00"))
        self.assertEqual(invoice.grand_total, sum(l.subtotal for l in cart.lines))
        self.assertEqual(invoice.bill_id, "20250601-1226")
        self.assertEqual(invoice.date, when)
        self.assertEqual(invoice.customer_name, crud.WALK_IN_CUSTOMER)
        self.assertEqual(invoice.customer_phone, "")
        self.assertEqual(invoice.payment_mode, "Cash")
        self.assertEqual(invoice.lines, cart.lines)
        # clearing the cart belongs to the caller
        self.assertEqual(len(cart), 2)

    async def test_finalize_snapshot_survives_cart_changes(self):
        cart = make_cart(("Pen", 10, 3))
        invoice = await crud.finalize_invoice(cart, "Asha", "98300", "UPI")
        cart.clear()
        cart.add_line("Book", 50, 1, CATALOG)

        stored = await crud.get_invoice(invoice.bill_id)
        self.assertEqual(stored, invoice)
        self.assertEqual([l.product_name for l in stored.lines], ["Pen"])
        self.assertEqual(stored.customer_name, "Asha")
        self.assertEqual(stored.payment_mode, "UPI")
        self.assertIsNone(await crud.get_invoice("20990101-1"))

    async def test_finalize_empty_cart_raises_and_keeps_counter(self):
        with self.assertRaises(EmptyCartError):
            await crud.finalize_invoice(Cart())
        self.assertEqual(await crud.load_invoices(), [])
        self.assertIsNone(await crud.kv_get(crud.BILL_NO_KEY))

    async def test_finalize_rejects_unknown_payment_mode(self):
        with self.assertRaises(InvalidInputError):
            await crud.finalize_invoice(make_cart(("Pen", 10, 1)), payment_mode="Card")
        self.assertEqual(await crud.load_invoices(), [])

    async def test_list_round_trip_preserves_every_field(self):
        cart = make_cart(("Eraser", "0.10", 3), ("B2", "49.99", 2))
        invoice = await crud.finalize_invoice(
            cart, "  Ravi  ", "12345", "UPI", datetime(2025, 6, 1, 9, 5, 7, 123456)
        )

        listed = await crud.list_invoices()
        self.assertEqual(listed, [invoice])
        self.assertEqual(listed[0].grand_total, Decimal("100.28"))
        self.assertEqual(listed[0].customer_name, "Ravi")
        self.assertEqual(listed[0].lines[1].product_id, "B2")

    async def test_list_is_newest_first_storage_is_insertion_order(self):
        first = await crud.finalize_invoice(make_cart(("Pen", 10, 1)))
        second = await crud.finalize_invoice(make_cart(("Book", 50, 1)))
        third = await crud.finalize_invoice(make_cart(("Eraser", 2, 1)))

        self.assertEqual(
            [i.bill_id for i in await crud.list_invoices()],
            [third.bill_id, second.bill_id, first.bill_id],
        )
        self.assertEqual(
            [i.bill_id for i in await crud.load_invoices()],
            [first.bill_id, second.bill_id, third.bill_id],
        )

    async def test_delete_invoice_then_repeat_is_noop(self):
        keep = await crud.finalize_invoice(make_cart(("Pen", 10, 1)))
        gone = await crud.finalize_invoice(make_cart(("Book", 50, 1)))

        self.assertTrue(await crud.delete_invoice(gone.bill_id))
        self.assertNotIn(gone.bill_id, [i.bill_id for i in await crud.list_invoices()])

        self.assertFalse(await crud.delete_invoice(gone.bill_id))
        self.assertEqual(await crud.list_invoices(), [keep])

    async def test_deleted_number_is_not_reused(self):
        gone = await crud.finalize_invoice(make_cart(("Pen", 10, 1)))
        await crud.delete_invoice(gone.bill_id)
        nxt = await crud.finalize_invoice(make_cart(("Pen", 10, 1)))
        self.assertNotEqual(nxt.bill_id.split("-")[1], gone.bill_id.split("-")[1])

    async def test_clear_invoices_keeps_counter(self):
        when = datetime(2025, 6, 1)
        await crud.finalize_invoice(make_cart(("Pen", 10, 1)), when=when)
        await crud.finalize_invoice(make_cart(("Pen", 10, 1)), when=when)
        await crud.clear_invoices()
        self.assertEqual(await crud.list_invoices(), [])

        nxt = await crud.finalize_invoice(make_cart(("Pen", 10, 1)), when=when)
        self.assertEqual(nxt.bill_id, "20250601-1228")

    async def test_failed_ledger_write_leaves_history_untouched(self):
        when = datetime(2025, 6, 1)
        first = await crud.finalize_invoice(make_cart(("Pen", 10, 1)), when=when)

        async def failing_save(_invoices):
            raise StorageError("quota exceeded")

        with patch.object(crud, "_save_invoices", failing_save):
            with self.assertRaises(StorageError):
                await crud.finalize_invoice(make_cart(("Book", 50, 1)), when=when)

        self.assertEqual(await crud.load_invoices(), [first])
        # the number handed out before the failure is burnt, not reused
        nxt = await crud.finalize_invoice(make_cart(("Book", 50, 1)), when=when)
        self.assertEqual(nxt.bill_id, "20250601-1228")

    async def test_bill_id_skips_numbers_already_in_ledger(self):
        when = datetime(2025, 6, 1)
        first = await crud.finalize_invoice(make_cart(("Pen", 10, 1)), when=when)
        # counter rolled back by hand
        await crud.kv_set(crud.BILL_NO_KEY, b"1225")
        second = await crud.finalize_invoice(make_cart(("Pen", 10, 1)), when=when)
        self.assertEqual(first.bill_id, "20250601-1226")
        self.assertEqual(second.bill_id, "20250601-1227")

    async def test_loads_history_written_by_browser_version(self):
        legacy = (
            '[{"billId":"20250101-1226","date":"2025-01-01T10:00:00.000Z",'
            '"customerName":"Cash Customer","customerPhone":"","paymentMode":"UPI",'
            '"items":[{"id":1735725600000,"name":"Pen","price":10,"quantity":3,'
            '"subtotal":30}],"grandTotal":30}]'
        )
        await crud.kv_set(crud.BILLING_HISTORY_KEY, legacy.encode("utf-8"))

        (invoice,) = await crud.load_invoices()
        self.assertEqual(invoice.bill_id, "20250101-1226")
        self.assertEqual(invoice.grand_total, Decimal("30"))
        self.assertEqual(invoice.lines[0].product_id, "")
        self.assertEqual(invoice.lines[0].product_name, "Pen")

        report = await crud.sales_report()
        self.assertEqual(row_named(report, "Pen").income, Decimal("30"))

    async def test_corrupt_history_raises_storage_error(self):
        await crud.kv_set(crud.BILLING_HISTORY_KEY, b"{not json")
        with self.assertRaises(StorageError):
            await crud.load_invoices()

        await crud.kv_set(crud.BILLING_HISTORY_KEY, b'[{"billId": "x"}]')
        with self.assertRaises(StorageError):
            await crud.load_invoices()

    # ---------- Reports ----------

    async def test_sales_report_over_ledger(self):
        await crud.finalize_invoice(make_cart(("Pen", 10, 3), ("Book", 50, 1)))
        await crud.finalize_invoice(make_cart(("Pen", 10, 2)))

        report = await crud.sales_report()
        pen = row_named(report, "Pen")
        self.assertEqual(pen.quantity, 5)
        self.assertEqual(pen.income, Decimal("50.00"))
        self.assertEqual(report.total_revenue, Decimal("100"))
        # equal income: Pen was billed first
        self.assertEqual([r.name for r in report.rows], ["Pen", "Book"])
        self.assertEqual(await crud.sales_report(), report)

    async def test_sales_report_keeps_deleted_products(self):
        await crud.import_products_csv('id,name,a,b,price\n"B1","Pen",,,"10"\n')
        catalog = await crud.list_products()
        cart = Cart()
        cart.add_line("Pen", None, 2, catalog)
        await crud.finalize_invoice(cart)

        self.assertTrue(await crud.delete_product("Pen"))
        report = await crud.sales_report()
        self.assertEqual(row_named(report, "Pen").income, Decimal("20"))

    # ---------- Catalog ----------

    async def test_add_and_delete_products(self):
        self.assertEqual(await crud.list_products(), [])

        pen = await crud.add_product("Pen", "10.50", "B1")
        book = await crud.add_product("  Book ", 50)
        self.assertEqual(pen, Product(id="B1", name="Pen", price=Decimal("10.50")))
        self.assertEqual(book.name, "Book")
        self.assertTrue(book.id)
        self.assertEqual(await crud.list_products(), [pen, book])

        self.assertTrue(await crud.delete_product("B1"))
        self.assertFalse(await crud.delete_product("B1"))
        self.assertTrue(await crud.delete_product("Book"))
        self.assertEqual(await crud.list_products(), [])

    async def test_delete_product_at_removes_the_selected_duplicate(self):
        text = (
            "Book ID,Title,Author,Stock,Price\n"
            '"B1","Pen",,,"10"\n'
            '"B1","Pen",,,"12"\n'
            '"Pen","Marker",,,"30"\n'
        )
        first, second, marker = await crud.import_products_csv(text)

        self.assertTrue(await crud.delete_product_at(1, second))
        self.assertEqual(await crud.list_products(), [first, marker])

        # a product whose id is another product's name
        self.assertTrue(await crud.delete_product_at(1, marker))
        self.assertEqual(await crud.list_products(), [first])

    async def test_delete_product_at_ignores_stale_selection(self):
        pen = await crud.add_product("Pen", 10, "B1")
        book = await crud.add_product("Book", 50, "B2")

        self.assertFalse(await crud.delete_product_at(0, book))
        self.assertFalse(await crud.delete_product_at(5))
        self.assertFalse(await crud.delete_product_at(-1))
        self.assertEqual(await crud.list_products(), [pen, book])

        self.assertTrue(await crud.delete_product_at(0))
        self.assertEqual(await crud.list_products(), [book])

    def test_read_stock_sheet(self):
        good = os.path.join(self.temp_dir.name, "stock.csv")
        with open(good, "wb") as f:
            f.write("\ufeffid,name\n\"B1\",\"₹ Pen\"\n".encode("utf-8"))
        self.assertEqual(crud.read_stock_sheet(good), 'id,name\n"B1","₹ Pen"\n')

        # cp1252 export from a spreadsheet
        legacy = os.path.join(self.temp_dir.name, "legacy.csv")
        with open(legacy, "wb") as f:
            f.write(b'id,name\n"B1","Pen \x80 10"\n')
        with self.assertRaises(InvalidInputError):
            crud.read_stock_sheet(legacy)

        with self.assertRaises(StorageError):
            crud.read_stock_sheet(os.path.join(self.temp_dir.name, "missing.csv"))

    async def test_add_product_validation_leaves_catalog_unchanged(self):
        await crud.add_product("Pen", 10, "B1")
        bad_calls = [
            ("", 10, None),
            ("Pencil", -1, None),
            ("Pencil", "abc", None),
            ("Pen", 12, None),  # duplicate name
            ("Pencil", 12, "B1"),  # duplicate id
        ]
        for name, price, pid in bad_calls:
            with self.subTest(name=name, price=price, pid=pid):
                with self.assertRaises(InvalidInputError):
                    await crud.add_product(name, price, pid)
        self.assertEqual(len(await crud.list_products()), 1)

    async def test_import_replaces_catalog(self):
        await crud.add_product("Old", 1, "X1")
        text = (
            "Book ID,Title,Author,Stock,Price\n"
            '"B1","Widget",,,"₹12.50"\n'
            '"B2","",,,"5"\n'
            '"B3","Gadget, Large",,,"7"\n'
        )
        products = await crud.import_products_csv(text)

        self.assertEqual([p.name for p in products], ["Widget", "Gadget, Large"])
        self.assertEqual(await crud.list_products(), products)
        self.assertEqual(products[0].price, 12.5)
        self.assertIsNone(
            next((p for p in await crud.list_products() if p.name == "Old"), None)
        )

    # ---------- Setup & reset ----------

    async def test_setup_business_and_secret(self):
        self.assertFalse(await crud.is_setup())
        self.assertIsNone(await crud.get_secret())

        profile = await crud.setup_business("  Sthirpara Unit ", "1234")
        self.assertEqual(profile.business_name, "Sthirpara Unit")
        self.assertTrue(await crud.is_setup())
        self.assertEqual(await crud.get_business(), profile)
        self.assertEqual(await crud.get_secret(), "1234")

        with self.assertRaises(InvalidInputError):
            await crud.setup_business("", "1234")
        with self.assertRaises(InvalidInputError):
            await crud.setup_business("Shop", "")

    async def test_reset_all_erases_everything(self):
        await crud.setup_business("Shop", "1234")
        await crud.add_product("Pen", 10)
        await crud.finalize_invoice(make_cart(("Pen", 10, 1)))

        await crud.reset_all()

        self.assertIsNone(await crud.get_business())
        self.assertIsNone(await crud.get_secret())
        self.assertEqual(await crud.list_products(), [])
        self.assertEqual(await crud.list_invoices(), [])
        self.assertIsNone(await crud.kv_get(crud.BILL_NO_KEY))

    # ---------- tiny helper coverage ----------

    def test__to_int_helper(self):
        self.assertEqual(crud._to_int("3"), 3)
        self.assertIsNone(crud._to_int("nan"))
        self.assertIsNone(crud._to_int(None))
        self.assertEqual(crud._to_int("5000.0"), 5000)
        self.assertEqual(crud._to_int(" 42 "), 42)
        self.assertIsNone(crud._to_int("-3"))


if __name__ == "__main__":
    unittest.main()
