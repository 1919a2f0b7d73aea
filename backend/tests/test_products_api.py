# Overview: Pytest coverage for product and warehouse HTTP routes.


class TestProductRoutes:
    def test_create_with_inventory(self, client, db_session, headers_a, wh_main):
        response = client.post('/api/products', headers=headers_a, json={
            'product_name': 'Lamp',
            'product_code': 'L-1',
            'warehouseInventory': [{'warehouse_id': wh_main.id, 'quantity': 6}],
        })
        assert response.status_code == 201
        assert response.json['total_quantity'] == 6
        assert response.json['parent_product_id'] == response.json['id']

    def test_duplicate_code_conflict(self, client, db_session, headers_a, product_a):
        response = client.post('/api/products', headers=headers_a, json={
            'product_name': 'Copy', 'product_code': product_a.product_code,
        })
        assert response.status_code == 409

    def test_missing_name(self, client, db_session, headers_a):
        response = client.post('/api/products', headers=headers_a, json={'product_code': 'X'})
        assert response.status_code == 400
        assert response.json == {'error': 'Missing required fields: product_name'}

    def test_create_variations(self, client, db_session, headers_a, wh_main):
        response = client.post('/api/products/variations', headers=headers_a, json={
            'product_name': 'Sock',
            'variations': [
                {'product_name': 'Sock Red', 'quantity': 4},
                {'product_name': 'Sock Blue', 'quantity': '1'},
            ],
        })
        assert response.status_code == 201
        assert response.json['product']['product_type'] == 'Variable'
        assert response.json['product']['total_quantity'] == 5
        assert len(response.json['variations']) == 2

    def test_variations_with_parent_quantity_rejected(self, client, db_session, headers_a, wh_main):
        response = client.post('/api/products/variations', headers=headers_a, json={
            'product_name': 'Sock',
            'quantity': 50,
            'variations': [{'product_name': 'Sock Red', 'quantity': 4}],
        })
        assert response.status_code == 400
        assert client.get('/api/products', headers=headers_a).json['count'] == 0

    def test_variant_on_stocked_parent_conflicts(self, client, db_session, headers_a, wh_main):
        parent = client.post('/api/products/variations', headers=headers_a, json={
            'product_name': 'Sock', 'quantity': 50,
        }).json['product']
        assert parent['total_quantity'] == 50

        response = client.post('/api/products', headers=headers_a, json={
            'product_name': 'Sock Red', 'parent_product_id': parent['id'],
        })
        assert response.status_code == 409
        assert client.get(f"/api/products/{parent['id']}", headers=headers_a).json['total_quantity'] == 50

    def test_warehouse_quantity_operations(self, client, db_session, headers_a, product_a, wh_main):
        url = f'/api/products/{product_a.id}/warehouse-quantity'

        response = client.patch(url, headers=headers_a, json={
            'warehouse_id': wh_main.id, 'quantity': 3, 'operation': 'increase',
        })
        assert response.status_code == 200
        assert response.json['product']['total_quantity'] == 13

        response = client.patch(url, headers=headers_a, json={
            'warehouse_id': wh_main.id, 'quantity': 20, 'operation': 'decrease',
        })
        assert response.status_code == 400

    def test_inventory_and_stock_check(self, client, db_session, headers_a, product_a, wh_main):
        inventory = client.get(f'/api/products/{product_a.id}/warehouse-inventory', headers=headers_a).json
        assert inventory['total_quantity'] == 10

        check = client.get(
            f'/api/products/{product_a.id}/stock-check?warehouse_id={wh_main.id}&quantity=4', headers=headers_a
        ).json
        assert check['is_available'] is True
        assert check['available_quantity'] == 10

        response = client.get(f'/api/products/{product_a.id}/stock-check', headers=headers_a)
        assert response.status_code == 400

    def test_delete_parent_with_variants_conflicts(self, client, db_session, headers_a, variable_product):
        parent, variants = variable_product
        assert client.delete(f'/api/products/{parent.id}', headers=headers_a).status_code == 409

        assert client.delete(f'/api/products/{variants[0].id}', headers=headers_a).status_code == 200
        assert client.get(f'/api/products/{variants[0].id}', headers=headers_a).status_code == 404


class TestWarehouseRoutes:
    def test_create_and_fetch(self, client, db_session, headers_a, company_a):
        response = client.post('/api/warehouses', headers=headers_a, json={
            'warehouse_name': 'East', 'warehouse_address': '5 East St',
        })
        assert response.status_code == 201
        assert response.json['company_id'] == company_a.id

        fetched = client.get(f"/api/warehouses/{response.json['id']}", headers=headers_a)
        assert fetched.json['warehouse_name'] == 'East'

    def test_create_requires_address(self, client, db_session, headers_a):
        response = client.post('/api/warehouses', headers=headers_a, json={'warehouse_name': 'East'})
        assert response.status_code == 400

    def test_products_held(self, client, db_session, headers_a, product_a, wh_main, wh_north):
        held = client.get(f'/api/warehouses/{wh_main.id}/products', headers=headers_a).json
        assert held['count'] == 1
        assert client.get(f'/api/warehouses/{wh_north.id}/products', headers=headers_a).json['count'] == 0

    def test_deleted_warehouse_rejects_transfers(self, client, db_session, headers_a, product_a, wh_main, wh_north):
        assert client.delete(f'/api/warehouses/{wh_north.id}', headers=headers_a).status_code == 200

        response = client.post('/api/stock-transfer', headers=headers_a, json={
            'product_id': product_a.id,
            'from_warehouse_id': wh_main.id,
            'to_warehouse_id': wh_north.id,
            'quantity': 1,
        })
        assert response.status_code == 400
        assert response.json['errors'] == ['Destination warehouse was not found or is inactive.']
