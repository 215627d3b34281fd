import code

from dotenv import load_dotenv

from services import billing_service, date_policy, order_sync_service, promotion_service
from services.reference_service import load_reference_data_sync
from tools.vendor_exports import export_vendor_orders_excel


def main() -> None:
    load_dotenv()
    reference = load_reference_data_sync()

    banner = (
        "Order scheduling shell\n"
        "Variables 'ref', 'sync', 'promotion', 'billing', 'dates' are available. Example:\n"
        ">>> sync.sync_client_order(client_id, config, ref)\n"
        ">>> promotion.process_upcoming_orders_sync()\n"
    )
    namespace = {
        "ref": reference,
        "sync": order_sync_service,
        "promotion": promotion_service,
        "billing": billing_service,
        "dates": date_policy,
        "export_vendor_orders_excel": export_vendor_orders_excel,
    }
    code.interact(banner=banner, local=namespace)


if __name__ == "__main__":
    main()
